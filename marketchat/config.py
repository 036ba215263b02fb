import os


class Settings:

    def __init__(self) -> None:
        self.mongodb_url = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
        self.mongodb_db = os.getenv("MONGODB_DB", "marketchat")
        self.jwt_secret_key = os.getenv("JWT_SECRET_KEY", "change-me")
        self.jwt_algorithm = os.getenv("JWT_ALGORITHM", "HS256")
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
        # unset -> single-instance fan-out only
        self.redis_url = os.getenv("REDIS_URL")
        self.fcm_service_account_file = os.getenv("FCM_SERVICE_ACCOUNT_FILE")
        self.fcm_project_id = os.getenv("FCM_PROJECT_ID")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.message_max_length = int(os.getenv("MESSAGE_MAX_LENGTH", "4000"))


settings = Settings()
