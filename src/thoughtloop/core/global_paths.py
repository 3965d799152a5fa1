"""Per-user directories for thoughtloop (config, data, logs)."""

from pathlib import Path

from platformdirs import user_config_dir, user_data_dir

APP_NAME = "thoughtloop"


class GlobalPath:
    """Resolve application directories following platform conventions."""

    @classmethod
    def data(cls) -> str:
        return user_data_dir(APP_NAME)

    @classmethod
    def log(cls) -> str:
        return str(Path(cls.data()) / "log")

    @classmethod
    def config(cls) -> str:
        return user_config_dir(APP_NAME)

