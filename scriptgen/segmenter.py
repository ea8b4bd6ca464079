import logging
from typing import List, Optional, Sequence

from scriptgen.config import SegmenterConfig
from scriptgen.datapools import import_data_pools
from scriptgen.errors import InputMissingError, MalformedOutlineError
from scriptgen.models import CapturedExchange, Command, CommandType, IncludedTestCase, Outline, OutlineEntry

logger = logging.getLogger(__name__)


class _CommandBuilder:
    def __init__(self, tag: str):
        self.tag = tag
        self.request_ids: List[int] = []

    def build(self) -> Command:
        return Command(name=self.tag, type=CommandType.EVENT, description=self.tag,
                       request_ids=tuple(self.request_ids))


class SessionSegmenter:
    """
    Groups a flat capture into commands, one per run of exchanges sharing a comment tag.
    Commands recorded under a login tag are nested in an included test case.
    """

    def __init__(self, config: Optional[SegmenterConfig] = None, working_dir: Optional[str] = None):
        self.config = config or SegmenterConfig()
        self.working_dir = working_dir

    def segment(self, exchanges: Sequence[CapturedExchange], datapool_paths: Sequence[str] = (),
                script_name: str = "_AutogeneratedName") -> Outline:
        if not exchanges:
            logger.error("Cannot build an outline from an empty capture")
            raise InputMissingError("Capture session is empty")

        entries: List[OutlineEntry] = []
        pending: Optional[IncludedTestCase] = None
        current: Optional[_CommandBuilder] = None
        prev_tag = ""

        for position, exchange in enumerate(exchanges):
            tag = self.config.normalize(exchange.comment)
            if current is None or tag != prev_tag:
                if current is not None:
                    self._route(entries, pending, current.build(), prev_tag, tag)
                if tag in self.config.login_tags:
                    pending = IncludedTestCase(name=self.config.login_test_case_name)
                current = _CommandBuilder(tag)
                prev_tag = tag
            current.request_ids.append(position)

        self._route(entries, pending, current.build(), prev_tag, None)

        # working files are written only after the walk succeeds
        data_pools = import_data_pools(datapool_paths, self.working_dir)

        outline = Outline(script_name=script_name, entries=entries, data_pools=data_pools)
        logger.info(f"Segmented {len(exchanges)} exchanges into {sum(1 for _ in outline.commands())} commands")
        return outline

    def _route(self, entries: List[OutlineEntry], pending: Optional[IncludedTestCase], command: Command,
               prev_tag: str, new_tag: Optional[str]):
        if prev_tag == self.config.login_marker or new_tag in self.config.login_synonyms:
            if pending is None:
                logger.error(f"Login grouping without an open test case while closing '{command.name}'")
                raise MalformedOutlineError(
                    f"Command '{command.name}' must be enclosed in a login test case, but none is open")
            pending.commands.append(command)
            # the test case moves to the end of the root if it is already there
            entries[:] = [e for e in entries if e is not pending]
            entries.append(pending)
        else:
            entries.append(command)
