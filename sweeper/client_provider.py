import os
import pathlib
import platform
from dataclasses import dataclass

from temporalio.client import Client
from temporalio.envconfig import ClientConfig


@dataclass
class Settings:
    """Process settings read from the environment."""
    temporal_address: str
    temporal_namespace: str
    temporal_profile: str | None
    task_queue: str
    port: int


def load_settings() -> Settings:
    return Settings(
        temporal_address=os.getenv("TEMPORAL_ADDRESS", "localhost:7233"),
        temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", "default"),
        temporal_profile=os.getenv("TEMPORAL_PROFILE"),
        task_queue=os.getenv("SWEEPER_TASK_QUEUE", "sweeper-task-queue"),
        port=int(os.getenv("PORT", "3000")),
    )


# Connects with the profile from temporal.toml when TEMPORAL_PROFILE names
# one and the file exists, otherwise with the address and namespace settings.
async def get_temporal_client(settings: Settings | None = None) -> Client:
    settings = settings or load_settings()
    config_file_path = get_config_file_path()
    if settings.temporal_profile and config_file_path.is_file():
        connect_config = ClientConfig.load_client_connect_config(
            profile=settings.temporal_profile,
            config_file=str(config_file_path),
        )
        return await Client.connect(**connect_config)
    return await Client.connect(
        settings.temporal_address,
        namespace=settings.temporal_namespace,
    )


# Default location of temporal.toml for the current operating system.
def get_config_file_path() -> pathlib.Path:
    home = pathlib.Path.home()
    system = platform.system()

    if system == "Darwin":
        return home / "Library/Application Support/temporalio/temporal.toml"
    if system == "Windows":
        app_data = os.getenv("AppData")
        if app_data is None:
            raise RuntimeError("AppData environment variable not set")
        return pathlib.Path(app_data) / "temporalio/temporal.toml"

    xdg_config_home = os.getenv("XDG_CONFIG_HOME")
    base = pathlib.Path(xdg_config_home) if xdg_config_home else home / ".config"
    return base / "temporalio/temporal.toml"
