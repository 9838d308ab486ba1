#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SoloHabits - Command Line
Консольная оболочка над движком привычек

Версия: 1.1.0
Дата: 2026-10-17
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config import get_config
from core.models import HabitError, ValidationError
from database.manager import DatabaseError
from services import ServiceManager
from services.data_export import export_habits_to_csv, export_to_file, import_from_file
from services.scheduler import run_scheduler
from utils.logger import setup_logging

logger = logging.getLogger(__name__)

def cmd_status(manager: ServiceManager, args) -> int:
    summary = manager.stats.get_profile_summary()
    today = manager.habits.get_today_stats()

    if args.json:
        print(json.dumps({'profile': summary, 'today': today}, ensure_ascii=False, indent=2))
        return 0

    print(f"{summary['avatar']} {summary['username']} - Level {summary['level']} "
          f"({summary['total_xp']} XP, {summary['xp_to_next']} to next)")
    print(f"Today: {today['completed']}/{today['total']} ({today['percentage']}%)")
    for habit in manager.habits.get_today_habits():
        mark = "✅" if manager.habits.is_completed_today(habit.id) else "⬜"
        print(f"  {mark} {habit.icon} {habit.name} [{habit.id[:8]}] streak {habit.current_streak}")
    return 0

def cmd_add(manager: ServiceManager, args) -> int:
    habit = manager.habits.add(
        args.name,
        description=args.description,
        icon=args.icon,
        frequency=args.frequency,
        scheduled_days=args.days
    )
    print(f"➕ {habit.icon} {habit.name} ({habit.id})")
    return 0

def _resolve_habit_id(manager: ServiceManager, prefix: str) -> str:
    matches = [h.id for h in manager.habits.get_all() if h.id.startswith(prefix)]
    if len(matches) == 1:
        return matches[0]
    return prefix

def cmd_complete(manager: ServiceManager, args) -> int:
    result = manager.habits.complete(_resolve_habit_id(manager, args.habit_id))
    if result.already_completed:
        print("Already completed today")
        return 0

    print(f"✅ +{result.xp} XP (streak {result.streak})")
    if result.leveled_up:
        print(f"🎉 Level {result.new_level}!")
    for achievement in result.achievements:
        print(f"🏆 {achievement.icon} {achievement.name}")
    return 0

def cmd_undo(manager: ServiceManager, args) -> int:
    if manager.habits.uncomplete(_resolve_habit_id(manager, args.habit_id)):
        print("↩️ Completion undone")
        return 0
    print("Not completed today")
    return 1

def cmd_rollover(manager: ServiceManager, args) -> int:
    result = manager.rollover.check_daily_reset()
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0

def cmd_achievements(manager: ServiceManager, args) -> int:
    for status in manager.achievements.get_all():
        mark = "🏆" if status.unlocked else "🔒"
        print(f"{mark} {status.definition.icon} {status.definition.name} "
              f"{status.progress}/{status.definition.target} ({status.progress_percent}%)")
    print(f"{manager.achievements.get_unlocked_count()}/{manager.achievements.get_total_count()} unlocked")
    return 0

def cmd_export(manager: ServiceManager, args) -> int:
    config = get_config()
    export_dir = Path(args.output) if args.output else config.export_dir
    if args.format == 'csv':
        path = export_habits_to_csv(manager.store, export_dir, manager.clock)
        if path is None:
            print("No habits to export")
            return 1
    else:
        path = export_to_file(manager.store, export_dir, manager.clock)
    print(f"📤 {path}")
    return 0

def cmd_import(manager: ServiceManager, args) -> int:
    document = import_from_file(manager.store, Path(args.file), manager.clock)
    print(f"📥 Imported {len(document.habits)} habits")
    return 0

def cmd_watch(manager: ServiceManager, args) -> int:
    run_scheduler(manager, get_config())
    return 0

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='SoloHabits - трекер привычек')
    parser.add_argument('--dev', action='store_true', help='Режим разработки (DEBUG логи)')
    subparsers = parser.add_subparsers(dest='command', required=True)

    status = subparsers.add_parser('status', help='Профиль и привычки на сегодня')
    status.add_argument('--json', action='store_true', help='Вывод в формате JSON')
    status.set_defaults(handler=cmd_status)

    add = subparsers.add_parser('add', help='Создать привычку')
    add.add_argument('name')
    add.add_argument('--description')
    add.add_argument('--icon')
    add.add_argument('--frequency', default='daily', choices=['daily', 'weekly', 'custom'])
    add.add_argument('--days', type=int, nargs='*', help='Дни недели (0 = воскресенье)')
    add.set_defaults(handler=cmd_add)

    complete = subparsers.add_parser('complete', help='Отметить выполнение')
    complete.add_argument('habit_id')
    complete.set_defaults(handler=cmd_complete)

    undo = subparsers.add_parser('undo', help='Отменить сегодняшнее выполнение')
    undo.add_argument('habit_id')
    undo.set_defaults(handler=cmd_undo)

    rollover = subparsers.add_parser('rollover', help='Выполнить дневной сброс')
    rollover.set_defaults(handler=cmd_rollover)

    achievements = subparsers.add_parser('achievements', help='Список достижений')
    achievements.set_defaults(handler=cmd_achievements)

    export = subparsers.add_parser('export', help='Экспорт данных')
    export.add_argument('--format', default='json', choices=['json', 'csv'])
    export.add_argument('--output', help='Папка для файла экспорта')
    export.set_defaults(handler=cmd_export)

    import_parser = subparsers.add_parser('import', help='Импорт данных из JSON')
    import_parser.add_argument('file')
    import_parser.set_defaults(handler=cmd_import)

    watch = subparsers.add_parser('watch', help='Периодическая проверка дневного сброса')
    watch.set_defaults(handler=cmd_watch)

    return parser

def main(argv: Optional[List[str]] = None) -> int:
    """Главная функция запуска"""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = get_config()
    except ValueError as e:
        print(e, file=sys.stderr)
        return 2

    setup_logging(config)
    if args.dev:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("🔧 Режим разработки активирован")

    manager = ServiceManager(config)
    if not manager.initialize_services():
        return 1

    try:
        return args.handler(manager, args)
    except (HabitError, ValidationError, DatabaseError) as e:
        logger.error(f"❌ {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        manager.close_services()

if __name__ == "__main__":
    sys.exit(main())
