from typing import Annotated

from annotated_types import Ge
from pydantic import PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    max_concurrency: PositiveInt | None = None
    """Max number of commands computing at the same time. Unset means no limit."""

    log_indent: Annotated[int, Ge(0)] = 2
    """Spaces per cause-chain level when reporting failures."""

    model_config = SettingsConfigDict(env_prefix="COMMANDGRAPH_")
