from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PLACEHOLDERS = (
    "your_api_key_here",
    "PUT_YOUR_KEY_HERE",
    "changeme",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional document store. Without it the response cache stays in-process
    # and preferences live only in the per-session key/value store.
    database_url_async: str | None = None
    database_url_sync: str | None = None

    storage_dir: str = ".decision_maker"
    api_base_url: str = ""

    ticketmaster_api_key: str | None = None
    ticketmaster_base_url: str = "https://app.ticketmaster.com/discovery/v2"

    eventbrite_api_token: str | None = None
    eventbrite_base_url: str = "https://www.eventbriteapi.com/v3"

    spotify_client_id: str | None = None
    spotify_accounts_url: str = "https://accounts.spotify.com"
    spotify_api_url: str = "https://api.spotify.com/v1"
    spotify_redirect_uri: str = "http://localhost:3003/"

    spoonacular_key: str | None = None
    spoonacular_base_url: str = "https://api.spoonacular.com"
    api_ninjas_key: str | None = None
    api_ninjas_base_url: str = "https://api.api-ninjas.com/v1"

    yelp_api_key: str | None = None
    yelp_base_url: str = "https://api.yelp.com/v3"

    tmdb_api_key: str | None = None
    tmdb_base_url: str = "https://api.themoviedb.org"
    tmdb_language: str = "en-US"
    tmdb_proxy_endpoint: str | None = None

    nominatim_url: str = "https://nominatim.openstreetmap.org"

    http_timeout_secs: float = 15.0

    @model_validator(mode="after")
    def validate_api_keys(self) -> "Settings":
        """Reject keys that were copied from the example .env without editing."""
        keys = {
            "TICKETMASTER_API_KEY": self.ticketmaster_api_key,
            "EVENTBRITE_API_TOKEN": self.eventbrite_api_token,
            "SPOTIFY_CLIENT_ID": self.spotify_client_id,
            "SPOONACULAR_KEY": self.spoonacular_key,
            "API_NINJAS_KEY": self.api_ninjas_key,
            "YELP_API_KEY": self.yelp_api_key,
            "TMDB_API_KEY": self.tmdb_api_key,
        }
        for name, value in keys.items():
            if value is not None and value.strip() in _PLACEHOLDERS:
                raise ValueError(
                    f"{name} is not properly configured. "
                    "Replace the placeholder in .env with a real key or remove the line."
                )
        return self

    @property
    def has_ticketmaster_key(self) -> bool:
        return bool(self.ticketmaster_api_key)

    @property
    def has_eventbrite_token(self) -> bool:
        return bool(self.eventbrite_api_token)

    @property
    def has_database(self) -> bool:
        return bool(self.database_url_async)


@lru_cache
def get_settings() -> Settings:
    return Settings()
