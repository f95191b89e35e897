from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TrackRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    artist: str = Field(..., min_length=1, max_length=255)
    track: str = Field(..., min_length=1, max_length=255)
    album: Optional[str] = None
    album_type: Optional[str] = None

    # Audio features
    danceability: Optional[float] = Field(None, ge=0, le=1)
    energy: Optional[float] = Field(None, ge=0, le=1)
    loudness: Optional[float] = None
    speechiness: Optional[float] = None
    acousticness: Optional[float] = None
    instrumentalness: Optional[float] = None
    liveness: Optional[float] = Field(None, ge=0, le=1)
    valence: Optional[float] = None
    tempo: Optional[float] = None
    duration_min: Optional[float] = Field(None, ge=0)
    energy_liveness: Optional[float] = None

    # Video metadata
    title: Optional[str] = None
    channel: Optional[str] = None
    licensed: Optional[bool] = None
    official_video: Optional[bool] = None

    # Engagement
    views: Optional[float] = Field(None, ge=0)
    likes: Optional[int] = Field(None, ge=0)
    comments: Optional[int] = Field(None, ge=0)
    stream: Optional[int] = Field(None, ge=0)

    most_played_on: Optional[Literal["Spotify", "Youtube"]] = None

    @model_validator(mode="after")
    def derive_energy_liveness(self):
        if (
            self.energy_liveness is None
            and self.energy is not None
            and self.liveness
        ):
            self.energy_liveness = self.energy / self.liveness
        return self
