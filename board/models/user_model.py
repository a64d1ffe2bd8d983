from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    username: str


@dataclass
class User:
    username: str
    password_hash: str

    @classmethod
    def from_dict(cls, data: dict):
        # "password" is the key used by files written before the rename.
        return cls(
            username=data["username"],
            password_hash=data.get("password_hash") or data.get("password", ""),
        )

    def to_dict(self):
        return {
            "username": self.username,
            "password_hash": self.password_hash,
        }
