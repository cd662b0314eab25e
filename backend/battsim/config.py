from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "BATTSIM_", "case_sensitive": False}

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Simulation
    timestep_hours: float = 1.0
    progress_every_hours: int = 730


settings = Settings()
