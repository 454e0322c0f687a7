from pydantic import BaseModel, Field, HttpUrl, constr
from typing import Optional


class UploadRequest(BaseModel):
    url: HttpUrl
    title: constr(strip_whitespace=True, min_length=1)
    artist: Optional[constr(strip_whitespace=True)] = None
    playlist_id: Optional[constr(strip_whitespace=True)] = Field(default=None, alias='playlistId')
    new_playlist_name: Optional[constr(strip_whitespace=True)] = Field(default=None, alias='newPlaylistName')
