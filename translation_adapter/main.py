"""Whole-document adaptation orchestrator."""

import asyncio
import copy
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
import yaml
from dotenv import load_dotenv

from .api_client import SiteMapper, WikiApiClient
from .coordinator import AdaptationCoordinator
from .markup import parse_html, prepare_for_publish, serialize
from .models import AdaptationResult
from .report_generator import ReportGenerator
from .session import AdaptationSession

logger = logging.getLogger(__name__)

ENV_PATTERN = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _expand_env(value: Any) -> Any:
    """Replace ``${NAME}`` strings by the environment variable NAME."""
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    if isinstance(value, str):
        match = ENV_PATTERN.match(value)
        if match:
            return os.getenv(match.group(1), "")
    return value


class ContentAdapter:
    """Main orchestrator for adapting a translated article."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize adapter with configuration.

        Args:
            config_path: Path to config YAML file
            transport: Optional httpx transport for the wiki API client
        """
        load_dotenv()

        config = self._default_config()
        if config_path and Path(config_path).exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                config = _merge(config, yaml.safe_load(f) or {})
        self.config = _expand_env(config)
        self.transport = transport

        api_config = self.config["api"]
        self.site_mapper = SiteMapper(
            url_template=api_config["url_template"],
            page_url_template=api_config["page_url_template"],
            domain_codes=api_config.get("domain_codes") or {},
        )
        self.report_generator = ReportGenerator()

    def _default_config(self) -> Dict:
        """Get default configuration."""
        return {
            "languages": {
                "source": "en",
                "target": "es",
            },
            "api": {
                "url_template": "https://$1.wikipedia.org/w/api.php",
                "page_url_template": "https://$1.wikipedia.org/wiki/$2",
                "user_agent": "translation-adapter/0.1",
                "timeout": 10.0,
                "max_retries": 3,
                "retry_backoff": 1.0,
                "domain_codes": {},
            },
            "resolution": {
                "batch_limit": 50,
                "thumbnail_size": 150,
                "probe_pages": True,
            },
            "output": {
                "report": True,
                "publish": False,
            },
            "logging": {
                "level": "INFO",
            },
        }

    def _create_client(self) -> WikiApiClient:
        api_config = self.config["api"]
        return WikiApiClient(
            site_mapper=self.site_mapper,
            user_agent=api_config["user_agent"],
            timeout=float(api_config["timeout"]),
            max_retries=int(api_config["max_retries"]),
            retry_backoff=float(api_config["retry_backoff"]),
            transport=self.transport,
        )

    def adapt(self, *args, **kwargs) -> AdaptationResult:
        """Synchronous wrapper around :meth:`adapt_files`."""
        return asyncio.run(self.adapt_files(*args, **kwargs))

    async def adapt_files(
        self,
        source_file: str,
        target_file: str,
        output_file: str,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
        report_path: Optional[str] = None,
        publish: Optional[bool] = None,
    ) -> AdaptationResult:
        """Adapt the links and references of a translated article.

        Args:
            source_file: HTML of the source article
            target_file: HTML of the machine translated article
            output_file: Path to write the adapted translation to
            source_language: Source language code (default from config)
            target_language: Translation language code (default from config)
            report_path: Optional custom report path
            publish: Convert unadapted links to plain text (default from config)

        Returns:
            AdaptationResult with exit code and statistics
        """
        start_time = time.time()
        source_language = source_language or self.config["languages"]["source"]
        target_language = target_language or self.config["languages"]["target"]
        if publish is None:
            publish = bool(self.config["output"]["publish"])
        resolution = self.config["resolution"]

        logger.info("Adapting %s (%s -> %s)", target_file, source_language, target_language)

        try:
            # Phase 1: Parse content
            logger.info("[1/5] Parsing content...")
            source_tree = parse_html(Path(source_file).read_text(encoding='utf-8'), "source")
            target_tree = parse_html(Path(target_file).read_text(encoding='utf-8'), "translation")
            logger.info("  Found %d source and %d translation sections",
                        len(source_tree.roots), len(target_tree.roots))

            # Phase 2: Open session
            logger.info("[2/5] Opening session...")
            api = self._create_client()
            session = AdaptationSession(
                source_tree,
                target_tree,
                source_language,
                target_language,
                api=api,
                batch_limit=int(resolution["batch_limit"]),
                thumbnail_size=int(resolution["thumbnail_size"]),
                probe_pages=bool(resolution["probe_pages"]),
            )

            try:
                # Phase 3: Adapt sections
                logger.info("[3/5] Adapting links and references...")
                coordinator = AdaptationCoordinator(session)
                sections = await coordinator.adapt_document()
                cache_stats = session.cache.stats
            finally:
                await session.aclose()
                await api.aclose()

            totals = self.report_generator.summarize(sections)
            logger.info("  %d links: %d adapted, %d unadapted",
                        totals["links"], totals["adapted"], totals["unadapted"])

            # Phase 4: Write output
            logger.info("[4/5] Writing output...")
            converted = prepare_for_publish(target_tree) if publish else 0
            output = Path(output_file)
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(serialize(target_tree), encoding='utf-8')
            logger.info("  Written: %s", output_file)

            exit_code = 0 if totals["unadapted"] == 0 else 1

            # Phase 5: Report
            if self.config["output"]["report"] or report_path:
                logger.info("[5/5] Generating report...")
                if not report_path:
                    report_path = str(output.with_suffix('.report.html'))
                report_path = self.report_generator.generate_report(
                    source_file=source_file,
                    target_file=target_file,
                    source_language=source_language,
                    target_language=target_language,
                    sections=sections,
                    execution_time=time.time() - start_time,
                    exit_code=exit_code,
                    output_path=report_path,
                )
                logger.info("  Report: %s", report_path)
            else:
                report_path = ""

            execution_time = time.time() - start_time
            logger.info("Adaptation completed in %.1fs, exit code %d", execution_time, exit_code)

            statistics = dict(totals)
            statistics.update({
                "converted_to_text": converted,
                "cache_hit_rate": round(cache_stats.hit_rate, 3),
                "execution_time": execution_time,
            })
            return AdaptationResult(
                exit_code=exit_code,
                output_path=str(output),
                report_path=report_path,
                sections=sections,
                statistics=statistics,
            )

        except Exception as e:
            logger.exception("Adaptation failed: %s", e)
            return AdaptationResult(
                exit_code=2,
                output_path="",
                report_path="",
                statistics={"error": str(e)},
            )
