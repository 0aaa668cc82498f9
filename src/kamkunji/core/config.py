import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


load_dotenv()

DEV_SECRET_KEY = "dev-secret-key-change-in-production"


@dataclass
class DatabaseConfig:
    """Database configuration settings"""
    url: str
    pool_size: int = 10
    max_overflow: int = 20
    pool_recycle: int = 3600
    echo: bool = False  # Log SQL queries


@dataclass
class APIConfig:
    """API-specific configuration"""
    version: str = "v1"
    title: str = "Kamkunji Ndogo API"
    max_page_size: int = 100
    default_page_size: int = 20


@dataclass
class SecurityConfig:
    """Security-related configuration"""
    secret_key: str = DEV_SECRET_KEY
    admin_setup_token: Optional[str] = None
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[str] = None


@dataclass
class AppConfig:
    """Application configuration"""
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 5000
    environment: str = "development"  # development, staging, production
    log_level: str = "INFO"
    auto_create_tables: bool = False  # create_all at startup (dev and tests)


@dataclass
class LipiaConfig:
    """Third-party STK push aggregator"""
    base_url: str = "https://lipia-api.kreativelabske.com/api"
    api_key: str = ""
    app_id: str = ""
    timeout_seconds: int = 30


@dataclass
class MpesaConfig:
    """Direct Safaricom Daraja integration"""
    consumer_key: str = ""
    consumer_secret: str = ""
    passkey: str = ""
    shortcode: str = ""
    callback_url: str = ""
    base_url: str = "https://sandbox.safaricom.co.ke"
    timeout_seconds: int = 30


@dataclass
class EmailConfig:
    resend_api_key: str = ""
    from_address: str = "Kamkunji Ndogo <noreply@kamkunjindogo.com>"


@dataclass
class PaymentPollConfig:
    """Payment confirmation polling"""
    max_attempts: int = 20
    interval_seconds: float = 3.0
    enabled: bool = True


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    environment: str = "development"
    # lipia (aggregator) or daraja (direct Safaricom)
    payment_gateway: str = "lipia"
    database: DatabaseConfig = field(
        default_factory=lambda: DatabaseConfig(url="sqlite:///kamkunji.db")
    )
    api: APIConfig = field(default_factory=APIConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    app: AppConfig = field(default_factory=AppConfig)
    lipia: LipiaConfig = field(default_factory=LipiaConfig)
    mpesa: MpesaConfig = field(default_factory=MpesaConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    payment_poll: PaymentPollConfig = field(default_factory=PaymentPollConfig)

    @classmethod
    def from_env(cls) -> "Config":
        environment = os.getenv("ENVIRONMENT", "development")

        return cls(
            environment=environment,
            payment_gateway=os.getenv("PAYMENT_GATEWAY", "lipia").lower(),
            database=DatabaseConfig(
                url=os.getenv("DATABASE_URL", "sqlite:///kamkunji.db"),
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
                pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "3600")),
                echo=_env_bool("DB_ECHO"),
            ),
            api=APIConfig(
                max_page_size=int(os.getenv("MAX_PAGE_SIZE", "100")),
                default_page_size=int(os.getenv("DEFAULT_PAGE_SIZE", "20")),
            ),
            security=SecurityConfig(
                secret_key=os.getenv("SECRET_KEY", DEV_SECRET_KEY),
                admin_setup_token=os.getenv("ADMIN_SETUP_TOKEN") or None,
                default_admin_email=os.getenv("DEFAULT_ADMIN_EMAIL") or None,
                default_admin_password=os.getenv("DEFAULT_ADMIN_PASSWORD") or None,
            ),
            app=AppConfig(
                debug=_env_bool("DEBUG"),
                host=os.getenv("HOST", "0.0.0.0"),
                port=int(os.getenv("PORT", "5000")),
                environment=environment,
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                auto_create_tables=_env_bool("AUTO_CREATE_TABLES"),
            ),
            lipia=LipiaConfig(
                base_url=os.getenv("LIPIA_API_BASE_URL", LipiaConfig.base_url),
                api_key=os.getenv("LIPIA_API_KEY", ""),
                app_id=os.getenv("LIPIA_APP_ID", ""),
            ),
            mpesa=MpesaConfig(
                consumer_key=os.getenv("MPESA_CONSUMER_KEY", ""),
                consumer_secret=os.getenv("MPESA_CONSUMER_SECRET", ""),
                passkey=os.getenv("MPESA_PASSKEY", ""),
                shortcode=os.getenv("MPESA_SHORTCODE", ""),
                callback_url=os.getenv("MPESA_CALLBACK_URL", ""),
                base_url=os.getenv("MPESA_BASE_URL", MpesaConfig.base_url),
            ),
            email=EmailConfig(
                resend_api_key=os.getenv("RESEND_API_KEY", ""),
                from_address=os.getenv("EMAIL_FROM", EmailConfig.from_address),
            ),
            payment_poll=PaymentPollConfig(
                max_attempts=int(os.getenv("PAYMENT_POLL_MAX_ATTEMPTS", "20")),
                interval_seconds=float(os.getenv("PAYMENT_POLL_INTERVAL_SECONDS", "3")),
                enabled=_env_bool("PAYMENT_POLL_ENABLED", "true"),
            ),
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> None:
        """Validate critical configuration"""
        if self.is_production and self.security.secret_key == DEV_SECRET_KEY:
            raise ValueError("SECRET_KEY must be set in production")

        if not self.database.url:
            raise ValueError("DATABASE_URL is required")

        if self.payment_gateway not in ("lipia", "daraja"):
            raise ValueError(f"Unknown PAYMENT_GATEWAY: {self.payment_gateway}")

        if self.payment_poll.max_attempts < 1:
            raise ValueError("PAYMENT_POLL_MAX_ATTEMPTS must be at least 1")
