import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    # Flask settings
    SECRET_KEY = os.getenv('SECRET_KEY')  # MUST be set via environment variable in production
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = FLASK_ENV == 'development'
    PORT = int(os.getenv('PORT', 3002))

    # CORS settings
    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', FRONTEND_URL).split(',')

    # Firebase settings
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID')
    FIREBASE_WEB_API_KEY = os.getenv('FIREBASE_WEB_API_KEY')
    FIRESTORE_EMULATOR_HOST = os.getenv('FIRESTORE_EMULATOR_HOST')
    FIREBASE_AUTH_EMULATOR_HOST = os.getenv('FIREBASE_AUTH_EMULATOR_HOST')

    # Email settings (optional)
    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USER = os.getenv('SMTP_USER')
    EMAIL_FROM = os.getenv('EMAIL_FROM')

    # Hierarchy settings
    DEFAULT_MAX_TASKS_PER_DAY = int(os.getenv('DEFAULT_MAX_TASKS_PER_DAY', 10))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def as_dict(cls):
        return {k: getattr(cls, k) for k in dir(cls) if k.isupper()}

    @classmethod
    def validate(cls):
        """Validate settings required outside development"""
        missing_vars = []
        if not cls.SECRET_KEY:
            missing_vars.append('SECRET_KEY')
        if not (cls.FIREBASE_PROJECT_ID or cls.FIRESTORE_EMULATOR_HOST):
            missing_vars.append('FIREBASE_PROJECT_ID')
        if not cls.FIREBASE_WEB_API_KEY:
            missing_vars.append('FIREBASE_WEB_API_KEY')

        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

        # Validate SECRET_KEY strength
        if len(cls.SECRET_KEY) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")

        return True
