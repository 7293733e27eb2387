from pathlib import Path
from pydantic import ConfigDict, SecretStr
from pydantic_settings import BaseSettings


BASE_DIR = Path(__file__).resolve().parent.parent.parent
ROOT_ENV = BASE_DIR.parent / ".env"


class EmailSettings(BaseSettings):
    resend_api_key: SecretStr | None = None
    email_from: str = "Availability Helper <onboarding@resend.dev>"

    model_config: ConfigDict = ConfigDict(
        env_file=ROOT_ENV,
        extra="ignore"
    )


email_settings: EmailSettings = EmailSettings()
