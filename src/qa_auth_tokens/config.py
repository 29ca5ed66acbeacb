"""Configuration management for the token lifecycle harness."""

from dataclasses import dataclass
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

# =============================================================================
# Role Definitions
# =============================================================================

# Operator roles of the application under test, in regeneration order.
ROLE_LABELS = {
    "admin": "Administrador",
    "n1": "Analista N1",
    "n2": "Analista N2",
    "n3": "Supervisor N3",
    "auditor": "Auditor",
    "agricultor": "Agricultor",
    "rtv": "RTVs",
    "rti": "RTVi",
    "b2b": "B2B",
    "avaliador": "Avaliador",
    "avaliados_cashback": "Avaliador Cashback",
    "multiplicador": "Multiplicador",
    "distribuidor": "Distribuidor",
}

DEFAULT_ROLE = "admin"

DEFAULT_API_REQUEST_TIMEOUT = 10.0  # seconds


def _credential(*env_names: str):
    """Optional credential field readable from any of the given env names."""
    return Field(default=None, validation_alias=AliasChoices(*env_names))


@dataclass(frozen=True)
class Identity:
    """A named role with its (document, secret) login pair."""

    name: str
    document: str | None = None
    secret: str | None = None
    label: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.document) and bool(self.secret)

    def __str__(self) -> str:
        return self.name


class Settings(BaseSettings):
    """Harness settings loaded from environment variables and `.env`."""

    # Target application
    base_url: str = "https://stg.conexaobiotec.com.br"
    login_path: str = "/?login=true"

    # Login form selectors
    document_selector: str = 'input[name="document"]'
    password_selector: str = 'input[name="password"]'
    submit_selector: str = 'button:has-text("ENTRAR")'

    # Snapshot storage (one <role>.json per identity)
    storage_dir: Path = Path("storage")

    # Browser
    headless: bool = True
    login_settle_ms: int = 2000  # wait after submitting the login form

    # Regeneration
    regeneration_poll_interval: float = 1.0  # seconds between lock polls

    # HTTP
    api_request_timeout: float = DEFAULT_API_REQUEST_TIMEOUT

    # Credentials (document = CPF). Env names follow the team's .env file.
    admin_cpf: str | None = _credential("ADMIN_CPF", "admin_cpf")
    admin_password: str | None = _credential("ADMIN_PASSWORD", "admin_password")
    n1_cpf: str | None = _credential("N1_CPF", "n1_cpf")
    n1_password: str | None = _credential("N1_PASSWORD", "n1_password")
    n2_cpf: str | None = _credential("N2_CPF", "n2_cpf")
    n2_password: str | None = _credential("N2_PASSWORD", "n2_password")
    n3_cpf: str | None = _credential("N3_CPF", "n3_cpf")
    n3_password: str | None = _credential("N3_PASSWORD", "n3_password")
    auditor_cpf: str | None = _credential("AUDITOR_CPF", "auditor_cpf")
    auditor_password: str | None = _credential("AUDITOR_PASSWORD", "auditor_password")
    agricultor_cpf: str | None = _credential("AGRICULTOR_CPF", "agricultor_cpf")
    agricultor_password: str | None = _credential("AGRICULTOR_PASSWORD", "agricultor_password")
    rtv_cpf: str | None = _credential("RTVS_CPF", "rtv_cpf")
    rtv_password: str | None = _credential("RTVS_PASSWORD", "rtv_password")
    rti_cpf: str | None = _credential("RTVI_CPF", "rti_cpf")
    rti_password: str | None = _credential("RTVI_PASSWORD", "rti_password")
    b2b_cpf: str | None = _credential("B2B_CPF", "b2b_cpf")
    b2b_password: str | None = _credential("B2B_PASSWORD", "b2b_password")
    avaliador_cpf: str | None = _credential("AVALIADOR_CPF", "avaliador_cpf")
    avaliador_password: str | None = _credential("AVALIADOR_PASSWORD", "avaliador_password")
    avaliados_cashback_cpf: str | None = _credential(
        "AVALIADOR_CASHBACK_CPF", "avaliados_cashback_cpf"
    )
    avaliados_cashback_password: str | None = _credential(
        "AVALIADOR_CASHBACK_PASSWORD", "avaliados_cashback_password"
    )
    multiplicador_cpf: str | None = _credential("MULTIPLICADOR_CPF", "multiplicador_cpf")
    multiplicador_password: str | None = _credential(
        "MULTIPLICADOR_PASSWORD", "multiplicador_password"
    )
    distribuidor_cpf: str | None = _credential("DISTRIBUIDOR_CPF", "distribuidor_cpf")
    distribuidor_password: str | None = _credential(
        "DISTRIBUIDOR_PASSWORD", "distribuidor_password"
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def identity(self, name: str) -> Identity:
        """
        Build the identity for a role name.

        Unknown names are valid identities without credentials.
        """
        return Identity(
            name=name,
            document=getattr(self, f"{name}_cpf", None),
            secret=getattr(self, f"{name}_password", None),
            label=ROLE_LABELS.get(name),
        )

    def identities(self) -> list[Identity]:
        """Return every configured role, with or without credentials."""
        return [self.identity(name) for name in ROLE_LABELS]
