"""Section-level adaptation pass."""

import asyncio
import json
import logging
from typing import List, Optional

from .links import is_wiki_link, link_title
from .models import LinkState, ReferenceState, SectionSummary, Side, TARGET_ID_PREFIX
from .references import REFERENCES_TYPE, is_reference
from .signals import ADAPTATION_COMPLETE, TRANSLATION_POST_MT

logger = logging.getLogger(__name__)


class AdaptationCoordinator:
    """Adapts the links and references of translated sections.

    Each pass resolves all link titles of a section with one batched lookup
    before any link reads the cache. Passes over different sections share
    the session cache and may run concurrently.
    """

    def __init__(self, session):
        self.session = session
        self._tasks: List[asyncio.Task] = []

    def listen(self):
        """Adapt every section announced as machine translated."""
        self.session.signals.connect(TRANSLATION_POST_MT, self._on_translation_post_mt)

    def _on_translation_post_mt(self, target_section: int):
        task = asyncio.get_running_loop().create_task(self.adapt(target_section))
        self._tasks.append(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        if task in self._tasks:
            self._tasks.remove(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Adaptation pass failed: %s", error, exc_info=error)

    async def wait_pending(self) -> List[SectionSummary]:
        """Wait for the passes scheduled from signals that are still running.

        Finished passes are reported through ``adaptation-complete`` only.
        """
        tasks, self._tasks = self._tasks, []
        return list(await asyncio.gather(*tasks))

    async def adapt(self, target_section: int, source_section: Optional[int] = None) -> SectionSummary:
        """Adapt one section of the translation.

        Args:
            target_section: Id of the section node in the translation tree
            source_section: Id of the source section it was translated from;
                looked up through the session when not given

        Returns:
            SectionSummary of the pass
        """
        session = self.session
        source_tree = session.source_tree
        target_tree = session.target_tree
        section = target_tree.node(target_section)

        if source_section is None:
            source_section = session.get_source_section(target_section)
        restored = section.get("data-cx-draft") == "true"

        source_links = []
        if source_section is not None:
            source_links = source_tree.find_all(is_wiki_link, under=source_section)
        target_links = target_tree.find_all(is_wiki_link, under=target_section)

        # 1. Titles to resolve; a restored draft is already adapted
        titles = []
        if not restored:
            for node_id in source_links:
                title = link_title(source_tree.node(node_id))
                if title and title not in titles:
                    titles.append(title)

        # 2. One batched lookup for the whole section
        if titles:
            await session.resolver.resolve_titles(
                titles, session.source_language, session.target_language
            )

        # 3. Links read the now populated cache
        sources = [session.link_for_node(node_id, Side.SOURCE) for node_id in source_links]
        targets = [session.link_for_node(node_id, Side.TARGET) for node_id in target_links]
        for link in targets:
            link.adapt(resolution_attempted=True)

        if session.probe_pages:
            probes = [link.fetch_link_data() for link in sources]
            probes += [link.fetch_link_data() for link in targets if link.state is LinkState.ADAPTED]
            await asyncio.gather(*probes)

        # 4. References
        adapted, failed = self._process_references(target_section, restored)
        if not restored and section.get("typeof") == REFERENCES_TYPE and source_section is not None:
            # Reference list data is stripped before machine translation
            source_data = source_tree.node(source_section).data_mw()
            if source_data is not None:
                section.attrs["data-mw"] = json.dumps(source_data)

        summary = SectionSummary(
            section_id=section.get("id") or str(target_section),
            restored_from_draft=restored,
            titles_requested=len(titles),
            links=[link.to_record() for link in targets],
            references_adapted=adapted,
            references_failed=failed,
        )
        logger.info(
            "Adapted section %s: %d links (%d adapted, %d unadapted), %d references",
            summary.section_id, len(summary.links),
            summary.count(LinkState.ADAPTED), summary.count(LinkState.UNADAPTED),
            adapted,
        )
        session.signals.fire(ADAPTATION_COMPLETE, target_section, summary)
        return summary

    def _process_references(self, target_section: int, restored: bool):
        session = self.session
        tree = session.target_tree
        adapted = failed = 0

        for node_id in tree.find_all(is_reference, under=target_section):
            node = tree.node(node_id)
            node.attrs["contenteditable"] = "false"
            if not restored and not node.get("data-sourceid") and node.get("id"):
                node.attrs["data-sourceid"] = node.attrs["id"]
                node.attrs["id"] = TARGET_ID_PREFIX + node.attrs["id"]

            reference = session.reference_for_node(node_id, Side.TARGET)
            if restored:
                continue
            if reference.adapt() is ReferenceState.ADAPTED:
                adapted += 1
            else:
                failed += 1

        return adapted, failed

    async def adapt_document(self) -> List[SectionSummary]:
        """Adapt every section of the translation concurrently."""
        tree = self.session.target_tree
        sections = [root for root in tree.roots if not tree.node(root).is_text]
        return list(await asyncio.gather(*(self.adapt(section) for section in sections)))
