"""IDAGIO API client: authentication and catalog metadata."""

import json
import sys
from typing import Dict, Iterable, List, Optional, Union
from urllib.parse import parse_qsl

import requests
from bs4 import BeautifulSoup

from .errors import (
    MalformedResponseError,
    ManifestNotFoundError,
    NotFoundError,
    TransportError,
    UnauthorizedError,
    UnsupportedSourceError,
)
from .models import (
    AlbumRecord,
    Cursor,
    PlaylistRecord,
    RenditionSet,
    Session,
    StreamDescriptor,
    VideoManifest,
    VideoRecord,
    unwrap_result,
    require_field,
)

BASE_URL = "https://api.idagio.com/"
PLAYER_URL = "https://player.vimeo.com/video/"
REFERER = "https://app.idagio.com/"

CLIENT_ID = "com.idagio.app.android"
CLIENT_SECRET = (
    "adbisIGrocsUckWyodUj2knedpyepubGurlyeawosShyufJishleseanreBlogIbCefHodCigNafweeg"
    "yeebraftEdnooshDeavolirdoppEcIassyet9CirIrnofmaj"
)
USER_AGENT = "Android 3.8.8 (Build 3080800) [release]"

STREAM_PARAMS = {
    "client_type": "android-3",
    "client_version": "3.8.8",
    "device_id": "757a7c4dca4121ec",
}

# Query keys accepted for the artist album filter; sent upstream in singular form.
ARTIST_FILTER_KEYS = ("composers", "conductors", "ensembles", "instruments", "soloists")
ARTIST_PAGE_SIZE = 100

PLAYER_CONFIG_MARKER = "window.playerConfig"
PLAYER_CONFIG_PREFIX_LEN = len("window.playerConfig = ")

VIDEO_SOURCE = "vimeo"

JSON_HEADERS = {"Content-Type": "application/json; charset=UTF-8"}


class IdagioClient:
    """Client for the IDAGIO API.

    Holds the HTTP connection pool only. Authorization lives in the ``Session``
    returned by ``authenticate`` and is passed to each call.
    """

    def __init__(self, base_url: str = BASE_URL, timeout: float = 30):
        """Initialize IDAGIO client.

        Args:
            base_url: API root, with trailing slash
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({"User-Agent": USER_AGENT})

    def close(self):
        self.http.close()

    def _request(
        self,
        method: str,
        url: str,
        session: Optional[Session] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs,
    ) -> requests.Response:
        """Send a request and check its status.

        Raises:
            NotFoundError: On 404
            UnauthorizedError: On 401/403
            TransportError: On connection failure or any other non-2xx status
        """
        request_headers = dict(headers or {})
        if session is not None:
            request_headers["Authorization"] = session.authorization
        kwargs.setdefault("timeout", self.timeout)

        try:
            response = self.http.request(method, url, headers=request_headers, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"request to {url} failed: {e}", {"url": url}) from e

        status = response.status_code
        if 200 <= status < 300:
            return response

        response.close()
        details = {"url": url, "status": status}
        if status == 404:
            raise NotFoundError(f"not found: {url}", details)
        if status in (401, 403):
            raise UnauthorizedError(f"unauthorized ({status}): {url}", details)
        raise TransportError(f"unexpected status {status} from {url}", details)

    def _get_json(self, url: str, session: Optional[Session] = None, **kwargs):
        response = self._request("GET", url, session, headers=JSON_HEADERS, **kwargs)
        return self._decode(response)

    @staticmethod
    def _decode(response: requests.Response):
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"invalid JSON from {response.url}: {e}"
            ) from e

    def authenticate(self, email: str, password: str) -> Session:
        """Exchange account credentials for a bearer token.

        Args:
            email: Account email
            password: Account password

        Returns:
            Session with token and plan flags
        """
        data = {
            "client_id": CLIENT_ID,
            "client_secret": CLIENT_SECRET,
            "username": email,
            "password": password,
            "grant_type": "password",
        }
        response = self._request(
            "POST",
            f"{self.base_url}v2.1/oauth",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data=data,
        )
        return Session.from_payload(self._decode(response))

    def get_album(self, session: Session, slug: str) -> AlbumRecord:
        """Fetch album metadata."""
        payload = self._get_json(f"{self.base_url}v2.0/albums/{slug}", session)
        return AlbumRecord.from_payload(unwrap_result(payload))

    def get_playlist(self, session: Session, slug: str) -> PlaylistRecord:
        """Fetch playlist metadata."""
        payload = self._get_json(f"{self.base_url}v2.0/playlists/{slug}", session)
        return PlaylistRecord.from_payload(unwrap_result(payload))

    def resolve_artist_id(self, session: Session, slug: str) -> str:
        payload = self._get_json(f"{self.base_url}artists.v3/{slug}", session)
        result = unwrap_result(payload)
        artist_id = require_field(result, "id")
        if isinstance(artist_id, bool) or not isinstance(artist_id, (int, str)):
            raise MalformedResponseError(f"invalid artist id: {artist_id!r}")
        return str(artist_id)

    def get_artist_albums(
        self,
        session: Session,
        slug: str,
        filters: Union[str, Dict[str, str], None] = None,
    ) -> List[str]:
        """List the slugs of every album of an artist.

        Follows the listing cursor until a page comes back without a next cursor.

        Args:
            session: Authenticated session
            slug: Artist slug
            filters: Optional query string or mapping; only the composer,
                conductor, ensemble, instrument and soloist keys are forwarded

        Returns:
            Album slugs in listing order
        """
        artist_id = self.resolve_artist_id(session, slug)

        params = filter_artist_params(filters)
        params["artist"] = artist_id
        params["sort"] = "relevance"

        url = f"{self.base_url}v2.0/metadata/albums/filter"
        slugs: List[str] = []
        first_page = True

        while True:
            payload = self._get_json(url, session, params=dict(params))
            results = require_field(payload, "results", list)
            slugs.extend(require_field(album, "slug", str) for album in results)

            cursor = Cursor.from_payload(payload)
            if cursor.next is None:
                break

            if first_page and cursor.prev is None:
                print(
                    f"⚠️ Artist has more than {ARTIST_PAGE_SIZE} albums. "
                    "Fetching the remaining metadata...",
                    file=sys.stderr,
                )
            first_page = False
            params["cursor"] = cursor.next

        return slugs

    def get_streams(
        self, session: Session, track_ids: Iterable[str], format_code: int
    ) -> List[StreamDescriptor]:
        """Resolve stream URLs for a batch of tracks.

        Args:
            session: Authenticated session
            track_ids: Track ids (string form)
            format_code: Upstream quality code from ``resolve_format``

        Returns:
            One descriptor per track the API could serve
        """
        params = dict(STREAM_PARAMS, quality=str(format_code))
        body = json.dumps({"ids": [str(i) for i in track_ids]})

        response = self._request(
            "POST",
            f"{self.base_url}v2.0/streams/bulk",
            session,
            headers=JSON_HEADERS,
            params=params,
            data=body,
        )
        payload = self._decode(response)
        return [
            StreamDescriptor.from_payload(result)
            for result in require_field(payload, "results", list)
        ]

    def get_file_response(self, url: str, with_range: bool = True) -> requests.Response:
        """Open a streaming GET for a media file."""
        headers = {"Range": "bytes=0-"} if with_range else None
        return self._request("GET", url, headers=headers, stream=True)

    def get_bytes(self, url: str) -> bytes:
        """Fetch a small resource (cover art) fully into memory."""
        return self._request("GET", url).content

    def get_video(self, session: Session, slug: str) -> VideoRecord:
        """Fetch live-concert metadata.

        Raises:
            UnsupportedSourceError: If the video is not hosted on Vimeo
        """
        payload = self._get_json(f"{self.base_url}livestream-event.v2/{slug}", session)
        video = VideoRecord.from_payload(unwrap_result(payload))
        if video.source != VIDEO_SOURCE:
            raise UnsupportedSourceError(
                f"unsupported video source '{video.source}', was expecting {VIDEO_SOURCE}"
            )
        return video

    def get_playback_manifest(self, video_id: str) -> VideoManifest:
        """Read the player config embedded in the Vimeo player page.

        Raises:
            ManifestNotFoundError: If no ``window.playerConfig`` script is present
        """
        response = self._request(
            "GET", f"{PLAYER_URL}{video_id}", headers={"Referer": REFERER}
        )
        return parse_player_config(response.text)

    def get_rendition_set(self, master_url: str) -> RenditionSet:
        """Fetch the rendition master document."""
        payload = self._get_json(master_url)
        return RenditionSet.from_payload(payload)


def filter_artist_params(filters: Union[str, Dict[str, str], None]) -> Dict[str, str]:
    """Keep only allowed artist filter keys, in their singular upstream form.

    Keys are matched case-insensitively; plural and singular spellings are both
    accepted. Anything else is dropped with a warning.
    """
    if not filters:
        return {}

    if isinstance(filters, str):
        pairs = parse_qsl(filters.lstrip("?").lower(), keep_blank_values=True)
    else:
        pairs = [(k.lower(), v) for k, v in filters.items()]

    params: Dict[str, str] = {}
    for key, value in pairs:
        if key in ARTIST_FILTER_KEYS:
            params[key[:-1]] = value
        elif key + "s" in ARTIST_FILTER_KEYS:
            params[key] = value
        else:
            print(f"⚠️ Dropped param: {key}.", file=sys.stderr)
    return params


def parse_player_config(html: str) -> VideoManifest:
    """Extract the playback manifest from a player page.

    Raises:
        ManifestNotFoundError: If no script starts with the player config marker
        MalformedResponseError: If the script payload is not valid JSON
    """
    soup = BeautifulSoup(html, "html.parser")

    for script in soup.find_all("script"):
        text = (script.string or script.get_text()).strip()
        if not text.startswith(PLAYER_CONFIG_MARKER):
            continue

        raw = text[PLAYER_CONFIG_PREFIX_LEN:].strip().rstrip(";")
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise MalformedResponseError(f"invalid player config JSON: {e}") from e
        return VideoManifest.from_payload(payload)

    raise ManifestNotFoundError("couldn't find vimeo meta json in vimeo html")
