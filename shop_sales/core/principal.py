from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as handed over by the authentication layer."""

    user_id: int
    shop_id: int
    role: str
