from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from geo.aoi import BBox
from layers.types import Feature, LoadOptions
from lod.policy import geometry_policy_for_zoom, max_pages_for_zoom, page_size_for_zoom
from remote.cancel import CancellationToken, FetchCancelled
from remote.config import RESOURCE_PATH, api_base, api_language
from remote.records import extract_items, record_to_feature
from remote.strategy import QueryStrategy, choose_strategy

logger = structlog.get_logger(__name__)

BASE_FIELDS = (
    "Id",
    "Active",
    "GreenCode",
    "GreenCodeType",
    "GreenCodeSubtype",
    "Shortname",
    "Geo",
)


@dataclass(frozen=True)
class FetchSettings:
    # First backoff delay; doubles on each retry (1s, 2s).
    retry_delay_s: float = 1.0
    max_retries: int = 2
    # Pause between successful pages so we don't hammer the origin.
    page_delay_s: float = 0.05


@dataclass(frozen=True)
class PageResult:
    ok: bool
    items: list[dict[str, Any]] = field(default_factory=list)


def build_query_params(
    strategy: QueryStrategy,
    *,
    page_size: int,
    page_number: int,
    category: str,
    language: str,
    active_only: bool,
) -> list[tuple[str, str]]:
    """
    Query-string pairs for one page. A list, since `fields` repeats.
    """
    params: list[tuple[str, str]] = [(k, str(v)) for k, v in strategy.params.items()]
    params.append(("pagesize", str(int(page_size))))
    params.append(("pagenumber", str(int(page_number))))
    params.append(("type", str(category)))
    if active_only:
        params.append(("active", "true"))
    for f in (*BASE_FIELDS, f"Detail.{language}"):
        params.append(("fields", f))
    params.append(("language", language))
    params.append(("removenullvalues", "false"))
    params.append(("getasidarray", "false"))
    return params


class PaginatedFetcher:
    """
    Pulls all pages of one category for one viewport, within the zoom's page budget.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        language: str | None = None,
        settings: FetchSettings | None = None,
        srid: int | None = None,
    ) -> None:
        self.client = client
        self.endpoint = f"{(base_url or api_base()).rstrip('/')}{RESOURCE_PATH}"
        self.language = language or api_language()
        self.settings = settings or FetchSettings()
        self.srid = srid

    async def fetch_category(
        self,
        bbox: BBox,
        zoom: float,
        category: str,
        options: LoadOptions | None,
        token: CancellationToken,
    ) -> list[Feature]:
        """
        Features for `category` in the view.

        Stops on a short page, a failed page, the page budget, or cancellation; in every
        case the features gathered so far are returned.
        """
        opts = options or LoadOptions()
        strategy = choose_strategy(category, zoom, bbox, srid=self.srid)
        page_size = int(opts.page_size or page_size_for_zoom(zoom))
        max_pages = max_pages_for_zoom(zoom)
        policy = geometry_policy_for_zoom(zoom)

        log = logger.bind(category=category, zoom=round(float(zoom), 2), strategy=strategy.kind)
        out: list[Feature] = []
        page = 1
        try:
            while True:
                token.raise_if_cancelled()
                params = build_query_params(
                    strategy,
                    page_size=page_size,
                    page_number=page,
                    category=category,
                    language=self.language,
                    active_only=opts.active_only,
                )
                result = await self._fetch_page(params, token, page)
                if not result.ok:
                    log.warning("page failed, stopping pagination", page=page, kept=len(out))
                    break

                for item in result.items:
                    feature = record_to_feature(item, zoom, policy, self.language)
                    if feature is not None:
                        out.append(feature)

                if len(result.items) < page_size:
                    break
                if page >= max_pages:
                    log.warning(
                        "page budget exhausted; zoom in for complete data",
                        max_pages=max_pages,
                    )
                    break

                page += 1
                if not await token.sleep(self.settings.page_delay_s):
                    raise FetchCancelled()
        except FetchCancelled:
            log.debug("fetch cancelled", page=page, kept=len(out))

        return out

    async def _fetch_page(
        self, params: list[tuple[str, str]], token: CancellationToken, page: int
    ) -> PageResult:
        attempt = 0
        while True:
            try:
                resp = await token.run(
                    self.client.get(
                        self.endpoint,
                        params=params,
                        headers={"Accept": "application/json"},
                    )
                )
            except httpx.HTTPError as exc:
                logger.error("page request failed", page=page, error=str(exc))
                return PageResult(ok=False)

            status = resp.status_code
            if status == 404:
                return PageResult(ok=True)

            if status >= 500 and attempt < self.settings.max_retries:
                delay = self.settings.retry_delay_s * (2**attempt)
                logger.warning("server error, retrying", page=page, status=status, delay_s=delay)
                if not await token.sleep(delay):
                    raise FetchCancelled()
                attempt += 1
                continue

            if resp.is_error:
                logger.error("page request failed", page=page, status=status)
                return PageResult(ok=False)

            try:
                payload = resp.json()
            except ValueError:
                logger.error("page body is not JSON", page=page)
                return PageResult(ok=False)
            return PageResult(ok=True, items=extract_items(payload))
