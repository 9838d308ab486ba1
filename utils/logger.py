import logging
import logging.config
from pathlib import Path

def setup_logging(config=None):
    """Настройка логирования по конфигурации приложения"""
    if config is None:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )
        return logging.getLogger()

    if config.log_to_file:
        Path(config.log_dir).mkdir(exist_ok=True, parents=True)
    logging.config.dictConfig(config.get_logging_config())
    return logging.getLogger()
