from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod"
    ENABLE_ADMIN: bool = True      # mounts /api/v1/admin routers
    SERVICE_NAME: str = "bazaar"

    class Config:
        env_file = ".env"
        extra="ignore"

admin_config = Settings()
