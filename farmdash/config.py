import os
from dataclasses import dataclass

@dataclass(frozen=True)
class Settings:
    token: str
    backend_url: str = ""
    backend_key: str = ""
    asset_bucket: str = "avatars"
    # JSON file used by the local backend when no backend URL is configured
    data_path: str = "farmdash_data.json"
    # Sessions expiring within this many seconds are refreshed by the bot loop
    session_refresh_margin: int = 300

    @property
    def backend_kind(self) -> str:
        return "supabase" if self.backend_url else "local"

def load_settings() -> Settings:
    token = os.getenv("DISCORD_BOT_TOKEN", "").strip()
    margin = os.getenv("FARMDASH_SESSION_REFRESH_MARGIN", "").strip()
    return Settings(
        token=token or "",
        backend_url=os.getenv("FARMDASH_BACKEND_URL", "").strip().rstrip("/"),
        backend_key=os.getenv("FARMDASH_BACKEND_KEY", "").strip(),
        asset_bucket=os.getenv("FARMDASH_ASSET_BUCKET", "").strip() or "avatars",
        data_path=os.getenv("FARMDASH_DATA_PATH", "").strip() or "farmdash_data.json",
        session_refresh_margin=int(margin) if margin.isdigit() else 300,
    )
