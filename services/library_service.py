import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from utils.exceptions import StorageError

logger = logging.getLogger(__name__)

MONGO_URI = os.getenv('MONGO_URI', 'mongodb://localhost:27017/music')
MONGO_DB_NAME = os.getenv('MONGO_DB_NAME')
DEFAULT_PLAYLIST_COVER = '/playlist.png'


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON friendly (ObjectId -> str, datetime -> ISO)."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, list):
            out[key] = [serialize_document(v) if isinstance(v, dict) else str(v) if isinstance(v, ObjectId) else v
                        for v in value]
        else:
            out[key] = value
    return out


class LibraryService:
    """Song and playlist documents."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            client = MongoClient(MONGO_URI)
            self._db = client[MONGO_DB_NAME] if MONGO_DB_NAME else client.get_default_database('music')
            logger.info('MongoDB connected (%s)', self._db.name)
        return self._db

    def create_song(self, title: str, artist: str, url: str, cover_image: str = '') -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        song = {'title': title, 'artist': artist, 'url': url, 'coverImage': cover_image,
                'createdAt': now, 'updatedAt': now}
        try:
            res = self.db.songs.insert_one(song)
        except Exception as e:
            raise StorageError(f"Failed to save song: {e}")
        song['_id'] = res.inserted_id
        return song

    def create_playlist(self, name: str, song_ids: List[ObjectId]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        playlist = {'name': name, 'coverImage': DEFAULT_PLAYLIST_COVER, 'songs': list(song_ids),
                    'createdAt': now, 'updatedAt': now}
        try:
            res = self.db.playlists.insert_one(playlist)
        except Exception as e:
            raise StorageError(f"Failed to save playlist: {e}")
        playlist['_id'] = res.inserted_id
        return playlist

    def add_song_to_playlist(self, playlist_id: str, song_id: ObjectId) -> Optional[Dict[str, Any]]:
        try:
            oid = ObjectId(playlist_id)
        except (InvalidId, TypeError):
            logger.warning('Ignoring invalid playlist id %r', playlist_id)
            return None
        playlist = self.db.playlists.find_one({'_id': oid})
        if not playlist:
            return None
        now = datetime.now(timezone.utc)
        self.db.playlists.update_one({'_id': oid}, {'$push': {'songs': song_id}, '$set': {'updatedAt': now}})
        playlist['songs'] = list(playlist.get('songs') or []) + [song_id]
        playlist['updatedAt'] = now
        return playlist

    def attach_to_playlist(self, song: Dict[str, Any], playlist_id: Optional[str] = None,
                           new_playlist_name: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if new_playlist_name:
            return self.create_playlist(new_playlist_name, [song['_id']])
        if playlist_id:
            return self.add_song_to_playlist(playlist_id, song['_id'])
        return None

    def list_playlists(self) -> List[Dict[str, Any]]:
        try:
            playlists = list(self.db.playlists.find().sort('createdAt', -1))
            song_ids = {sid for p in playlists for sid in (p.get('songs') or [])}
            songs = {s['_id']: s for s in self.db.songs.find({'_id': {'$in': list(song_ids)}})} if song_ids else {}
        except Exception as e:
            raise StorageError(f"Failed to load playlists: {e}")
        for p in playlists:
            p['songs'] = [songs[sid] for sid in (p.get('songs') or []) if sid in songs]
        return playlists
