"""
Pydantic models for Spotify Web API requests and responses.

Response models are read-only projections: unknown provider fields are ignored.
"""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


SAVED_TRACKS_MAX_LIMIT = 50
SAVED_TRACKS_DEFAULT_LIMIT = 20


class SavedTracksQuery(BaseModel):
    """Query parameters for GET /me/tracks."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=SAVED_TRACKS_DEFAULT_LIMIT, description="Page size (1-50)")
    offset: int = Field(default=0, description="Index of the first item")
    market: Optional[str] = Field(default=None, description="ISO 3166-1 alpha-2 country code")

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        """Clamp limit to the range Spotify accepts."""
        return max(1, min(SAVED_TRACKS_MAX_LIMIT, v))

    @field_validator("offset")
    @classmethod
    def validate_offset(cls, v: int) -> int:
        """Validate offset is non-negative."""
        return max(0, v)

    @field_validator("market")
    @classmethod
    def validate_market(cls, v: Optional[str]) -> Optional[str]:
        """Market must be a 2-letter region code."""
        if v is None or v == "":
            return None
        if len(v) != 2 or not v.isascii() or not v.isalpha():
            raise ValueError(f"market must be a 2-letter country code, got {v!r}")
        return v

    def to_params(self) -> Dict[str, str]:
        """Serialize to query parameters."""
        params = {"limit": str(self.limit), "offset": str(self.offset)}
        if self.market:
            params["market"] = self.market
        return params

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "SavedTracksQuery":
        """Parse from query parameters; missing values take defaults."""
        values: Dict[str, Any] = {}
        if params.get("limit"):
            values["limit"] = int(params["limit"])
        if params.get("offset"):
            values["offset"] = int(params["offset"])
        if params.get("market"):
            values["market"] = params["market"]
        return cls(**values)


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Image(_ProviderModel):
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


class Followers(_ProviderModel):
    total: int = 0


class UserProfile(_ProviderModel):
    """Projection of GET /me."""

    id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    product: Optional[str] = None
    uri: Optional[str] = None
    href: Optional[str] = None
    followers: Optional[Followers] = None
    images: List[Image] = Field(default_factory=list)
    external_urls: Dict[str, str] = Field(default_factory=dict)


class Artist(_ProviderModel):
    id: Optional[str] = None
    name: str
    uri: Optional[str] = None


class Album(_ProviderModel):
    id: Optional[str] = None
    name: str
    release_date: Optional[str] = None
    artists: List[Artist] = Field(default_factory=list)
    images: List[Image] = Field(default_factory=list)


class Track(_ProviderModel):
    id: Optional[str] = None
    name: str
    uri: Optional[str] = None
    duration_ms: Optional[int] = None
    explicit: bool = False
    popularity: Optional[int] = None
    preview_url: Optional[str] = None
    album: Optional[Album] = None
    artists: List[Artist] = Field(default_factory=list)


class SavedTrack(_ProviderModel):
    added_at: Optional[str] = None
    track: Track


class SavedTracksPage(_ProviderModel):
    """Projection of GET /me/tracks (one page of the user's library)."""

    href: Optional[str] = None
    items: List[SavedTrack] = Field(default_factory=list)
    limit: int
    offset: int
    total: int
    next: Optional[str] = None
    previous: Optional[str] = None

    def album_artist_names(self) -> List[str]:
        """
        Distinct album artist names on this page, in first-seen order.
        """
        seen: Dict[str, None] = {}
        for item in self.items:
            album = item.track.album
            if album is None:
                continue
            for artist in album.artists:
                seen.setdefault(artist.name, None)
        return list(seen)


class CallbackResponse(BaseModel):
    """Body returned to the browser when the callback flow succeeds."""

    state: str = Field(..., description="Terminal state reached by the callback")
    profile: UserProfile
    saved_tracks: SavedTracksPage
    album_artists: List[str] = Field(default_factory=list)
