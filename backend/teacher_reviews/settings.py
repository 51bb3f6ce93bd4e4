from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Directory holding the teachers.json / reviews.json snapshots
	data_dir: str = Field(default="./data", validation_alias="DATA_DIR")
	api_prefix: str = Field(default="/api", validation_alias="API_PREFIX")

	# Fixed admin credential pair checked by /auth/login
	admin_username: str = Field(default="admin", validation_alias="ADMIN_USERNAME")
	admin_password: str = Field(default="admin123", validation_alias="ADMIN_PASSWORD")
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	# Off by default: the admin gate lives in the client views
	require_admin_auth: bool = Field(default=False, validation_alias="REQUIRE_ADMIN_AUTH")

	# Encoded length ceiling for data:image/... photos (~2MB)
	max_photo_chars: int = Field(default=2_000_000, validation_alias="MAX_PHOTO_CHARS")

	cors_origins: list[str] = Field(
		default=["http://localhost:3000", "http://localhost:3001", "http://localhost:3002"],
		validation_alias="CORS_ORIGINS",
	)
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
	port: int = Field(default=5001, validation_alias="PORT")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")


class ClientSettings(BaseSettings):
	api_base_url: str = Field(default="http://localhost:5001/api", validation_alias="API_BASE_URL")
	ws_url: str = Field(default="ws://localhost:5001/ws", validation_alias="WS_URL")
	http_timeout_seconds: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT_SECONDS")
	reconnect_attempts: int = Field(default=10, validation_alias="RECONNECT_ATTEMPTS")
	reconnect_delay_seconds: float = Field(default=1.0, validation_alias="RECONNECT_DELAY_SECONDS")
	reconnect_delay_max_seconds: float = Field(default=30.0, validation_alias="RECONNECT_DELAY_MAX_SECONDS")
	cache_dir: str = Field(default="./.teacher_reviews_cache", validation_alias="CACHE_DIR")

	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
