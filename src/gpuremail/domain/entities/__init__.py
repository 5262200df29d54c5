from gpuremail.domain.entities.credentials import Credentials

__all__ = ["Credentials"]
