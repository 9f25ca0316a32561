from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "Cruiser Aviation"
    VERSION: str = "0.1.0"
    DATABASE_URL: str = "sqlite:///./data/cruiser.db"

    # Auth Config
    ALGORITHM: str = "HS256"
    JWT_SECRET: str | None = None
    SERVER_PRIVATE_KEY: str | None = None  # RS256 only
    SERVER_PUBLIC_KEY: str | None = None   # RS256 only
    JWT_ISSUER: str = "cruiser-aviation"
    JWT_AUDIENCE: str = "cruiser-app"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    IMPERSONATION_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Security
    PASSWORD_PEPPER: str = ""

    # Bootstrap Super Admin
    ADMIN_EMAIL: str
    ADMIN_PASSWORD: str

    # Route gate
    POLICY_FILE: str | None = None
    API_PREFIX: str = "/api"
    TOKEN_COOKIE_NAME: str = "token"
    REFRESH_COOKIE_NAME: str = "refreshToken"
    IMPERSONATION_COOKIE_NAME: str = "impersonationToken"
    IMPERSONATION_HEADER: str = "X-Impersonation-Token"
    COOKIE_SECURE: bool = False

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")

    def signing_key(self) -> str:
        if self.ALGORITHM.startswith("RS"):
            return _pem(self.SERVER_PRIVATE_KEY)
        return self.JWT_SECRET

    def verifying_key(self) -> str:
        if self.ALGORITHM.startswith("RS"):
            return _pem(self.SERVER_PUBLIC_KEY)
        return self.JWT_SECRET


def _pem(value: str | None) -> str | None:
    # .env files carry PEM blocks on one line with escaped newlines
    if value is None:
        return None
    return value.replace("\\n", "\n")


settings = Settings()
