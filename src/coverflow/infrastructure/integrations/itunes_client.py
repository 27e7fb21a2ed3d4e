"""iTunes Search API client - the ExternalLookupClient of the artwork engine."""

import logging
from typing import Any

import httpx

from coverflow.config.settings import ItunesSettings
from coverflow.domain.entities.artwork import SearchCandidate
from coverflow.domain.exceptions import ArtworkLookupError, LookupErrorKind
from coverflow.domain.ports import IArtworkLookupClient
from coverflow.domain.value_objects.artwork_key import clean_term

logger = logging.getLogger(__name__)


class ItunesClient(IArtworkLookupClient):
    """HTTP client for the iTunes Search API.

    Free, no auth. One search() = one GET, no retries here - rate limiting lives in the
    RateLimiter and the retry policy (none) in the RequestCoordinator.
    """

    # Hey future me, an injected httpx.AsyncClient is NOT closed by close() - whoever made it
    # owns it. Tests inject one with httpx.MockTransport, production lets us build our own.
    def __init__(
        self,
        settings: ItunesSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize iTunes client.

        Args:
            settings: iTunes configuration settings
            client: Optional pre-built HTTP client (not closed by close())
        """
        self.settings = settings or ItunesSettings()
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "application/json",
                },
                timeout=self.settings.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_params(self, artist: str, track: str) -> dict[str, str]:
        """Build query parameters for one search.

        The term is "<clean artist> <clean track>" - punctuation in titles like
        "Anti-Hero" or "(Remastered)" brackets only hurts iTunes' matching.
        """
        term = f"{clean_term(artist)} {clean_term(track)}".strip()
        params = {
            "term": term,
            "media": self.settings.media,
            "entity": self.settings.entity,
            "limit": str(self.settings.result_limit),
        }
        if self.settings.country:
            params["country"] = self.settings.country
        return params

    # Listen up, the except order matters! TimeoutException and HTTPStatusError are both
    # subclasses of HTTPError - catch them first or every timeout is reported as NETWORK.
    async def search(self, artist: str, track: str) -> list[SearchCandidate]:
        """Search iTunes for songs matching artist and track.

        Args:
            artist: Artist name
            track: Track title

        Returns:
            Parsed candidates (possibly empty)

        Raises:
            ArtworkLookupError: On timeout, transport failure, non-2xx status or bad JSON
        """
        params = self.build_params(artist, track)
        client = await self._get_client()

        try:
            response = await client.get(
                self.settings.base_url,
                params=params,
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ArtworkLookupError(
                f"iTunes request timed out after {self.settings.timeout_seconds:.1f}s",
                kind=LookupErrorKind.TIMEOUT,
            ) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise ArtworkLookupError(
                f"iTunes returned HTTP {status}",
                kind=LookupErrorKind.NETWORK,
                status_code=status,
                retry_after=_parse_retry_after(e.response),
            ) from e
        except httpx.HTTPError as e:
            raise ArtworkLookupError(
                f"iTunes request failed: {e}",
                kind=LookupErrorKind.NETWORK,
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ArtworkLookupError(
                "iTunes response is not valid JSON",
                kind=LookupErrorKind.MALFORMED_RESPONSE,
            ) from e

        candidates = self.parse_results(payload)
        logger.debug(
            "iTunes search %r returned %d candidates", params["term"], len(candidates)
        )
        return candidates

    def parse_results(self, payload: Any) -> list[SearchCandidate]:
        """Turn a search response body into candidates.

        Expected shape: {"resultCount": N, "results": [{artistName, trackName,
        collectionName, artworkUrl100, ...}, ...]}

        Raises:
            ArtworkLookupError: If the body does not have that shape
        """
        if not isinstance(payload, dict):
            raise ArtworkLookupError(
                f"iTunes response is a {type(payload).__name__}, expected an object",
                kind=LookupErrorKind.MALFORMED_RESPONSE,
            )

        results = payload.get("results")
        if not isinstance(results, list):
            raise ArtworkLookupError(
                "iTunes response has no results list",
                kind=LookupErrorKind.MALFORMED_RESPONSE,
            )

        candidates: list[SearchCandidate] = []
        for record in results:
            if not isinstance(record, dict):
                raise ArtworkLookupError(
                    "iTunes result entry is not an object",
                    kind=LookupErrorKind.MALFORMED_RESPONSE,
                )

            artwork_url = record.get("artworkUrl100")
            candidates.append(
                SearchCandidate(
                    candidate_artist=str(record.get("artistName") or ""),
                    # Album-only hits have no trackName
                    candidate_track=str(
                        record.get("trackName") or record.get("collectionName") or ""
                    ),
                    artwork_reference=(
                        self.upgrade_artwork_url(str(artwork_url)) if artwork_url else None
                    ),
                )
            )
        return candidates

    def upgrade_artwork_url(self, url: str) -> str:
        """Swap the thumbnail size segment for the large one.

        ".../source/100x100bb.jpg" -> ".../source/600x600bb.jpg". Only the LAST
        occurrence is replaced (the size segment sits at the end of the path). URLs
        without the token pass through unchanged.
        """
        head, token, tail = url.rpartition(self.settings.thumbnail_token)
        if not token:
            return url
        return f"{head}{self.settings.artwork_token}{tail}"


def _parse_retry_after(response: httpx.Response) -> float | None:
    """Read a numeric Retry-After header (HTTP-date form is ignored)."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


__all__ = ["ItunesClient"]
