from typing import Annotated

from fastapi import Depends

from jobwarden.config import AppConfig, Settings, get_config, get_settings
from jobwarden.core.scheduler import get_orchestrator
from jobwarden.services.orchestrator import JobOrchestrator

# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]
Orchestrator = Annotated[JobOrchestrator, Depends(get_orchestrator)]
