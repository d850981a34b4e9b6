# analyzers/patterns.py
import inspect
import pathlib
import re
from typing import Callable, Dict, List, Optional
from .base import Analyzer
from ..schemas import DiagnosticTag
from ..sandbox.host import load_class

Matcher = Callable[[str], bool]
SourceLocator = Callable[[str], Optional[str]]

# Ordered tag -> matcher registry. New tags are added with register_pattern /
# register_matcher instead of editing PatternMatcher.
PATTERN_REGISTRY: Dict[DiagnosticTag, Matcher] = {}


def register_pattern(tag: DiagnosticTag, pattern: str, flags: int = 0) -> Matcher:
    """Register a plain "matches anywhere" regex signature for `tag`."""
    def _match(text: str) -> bool:
        return re.search(pattern, text, flags) is not None
    _match.pattern = pattern
    PATTERN_REGISTRY[tag] = _match
    return _match


def register_matcher(tag: DiagnosticTag):
    """Decorator form for heuristics that need more than a single regex."""
    def _wrap(fn: Matcher) -> Matcher:
        PATTERN_REGISTRY[tag] = fn
        return fn
    return _wrap


register_pattern(DiagnosticTag.FILESYSTEM,
                 r"\bopen\(|os\.walk\(|os\.listdir\(|os\.scandir\(|\bglob\.|\.r?glob\(|shutil\.|Path\(")
register_pattern(DiagnosticTag.HTTP,
                 r"\brequests\.|\bhttpx\.|\burllib\b|\baiohttp\b|https?://|http\.client")
register_pattern(DiagnosticTag.CONFIG,
                 r"os\.environ|getenv\(|get_settings\(|\bsettings\.|configparser|config\[")
register_pattern(DiagnosticTag.CONTAINER,
                 r"\.make\(|\.resolve\(|\.singleton\(|\.bind\(|\.instance\(")
register_pattern(DiagnosticTag.DATABASE,
                 r"\.execute\(|\.query\(|\.cursor\(|\bsqlalchemy\b|create_engine\(|\.objects\.")
register_pattern(DiagnosticTag.CACHE,
                 r"\bcache\.|lru_cache|@cache\b|\.remember\(|\bcachetools\b")
register_pattern(DiagnosticTag.EVENT,
                 r"\.emit\(|\.listen\(|\.subscribe\(|\.connect\(|\bsignals?\.")
register_pattern(DiagnosticTag.QUEUE,
                 r"\.delay\(|\.apply_async\(|\.enqueue\(|\bdispatch\(|\bQueue\(")
register_pattern(DiagnosticTag.DEFERRED,
                 r"\bdeferred\s*=\s*True|def\s+is_deferred\(")
register_pattern(DiagnosticTag.BROADCAST,
                 r"\bbroadcast|\bwebsockets?\b", re.IGNORECASE)
register_pattern(DiagnosticTag.MAIL,
                 r"\bsmtplib\b|\.sendmail\(|send_mail\(|EmailMessage")
register_pattern(DiagnosticTag.NOTIFICATION,
                 r"\bnotify\(|Notification")
register_pattern(DiagnosticTag.SESSION,
                 r"\bsession\[|\bSession\(|sessionmaker\(")
register_pattern(DiagnosticTag.VALIDATION,
                 r"\bvalidate\(|Validator|@validator|\bjsonschema\b|model_validate\(")
register_pattern(DiagnosticTag.TEMPLATE,
                 r"\bjinja2\b|render_template\(|\bTemplate\(|\.render\(")
register_pattern(DiagnosticTag.ROUTE,
                 r"\.route\(|add_url_rule\(|APIRouter|url_for\(|include_router\(")
register_pattern(DiagnosticTag.AUTH,
                 r"\bauth\.|authenticate\(|login_required|has_permission\(")
register_pattern(DiagnosticTag.LOG,
                 r"\blogging\.|getLogger\(|get_logger\(")
register_pattern(DiagnosticTag.REDIS,
                 r"\bredis\.|\bRedis\(")
register_pattern(DiagnosticTag.SUBPROCESS,
                 r"\bsubprocess\.|os\.system\(|\bPopen\(")
register_pattern(DiagnosticTag.DYNAMIC_IMPORT,
                 r"import_module\(|__import__\(")

_LOOP_TOKEN = re.compile(r"\b(?:for|while)\b")
_COUNT_CALL = re.compile(r"\blen\(|\.count\(")
_COUNT_IN_LOOP = re.compile(r"\b(?:for|while)\b[^\n]{0,80}?(?:\blen\(|\.count\()")
_CHAINED_FETCH = re.compile(
    r"\.(?:all|fetchall|get)\(\)\s*\.\s*(?:get|all|first|filter|fetch\w*|select|load\w*|query)\("
)


@register_matcher(DiagnosticTag.COUNT_IN_LOOP)
def _count_in_loop(text: str) -> bool:
    if not (_LOOP_TOKEN.search(text) and _COUNT_CALL.search(text)):
        return False
    return _COUNT_IN_LOOP.search(text) is not None


@register_matcher(DiagnosticTag.POTENTIAL_N1_QUERY)
def _potential_n1_query(text: str) -> bool:
    return _CHAINED_FETCH.search(text) is not None


def locate_class_source(identifier: str) -> Optional[str]:
    """Default source locator: the file defining the component class."""
    return inspect.getsourcefile(load_class(identifier))


class PatternMatcher(Analyzer):
    """Flags suspicious startup work by matching component source against
    the tag registry. Results are cached per identifier for the matcher's
    lifetime, which is one profiling run."""

    def __init__(self, matchers: Optional[Dict[DiagnosticTag, Matcher]] = None,
                 source_locator: SourceLocator = locate_class_source):
        super().__init__("PatternMatcher")
        self.matchers = dict(matchers) if matchers is not None else dict(PATTERN_REGISTRY)
        self.source_locator = source_locator
        self._cache: Dict[str, List[str]] = {}

    def run(self, identifier: str) -> List[str]:
        return self.analyze(identifier)

    def classify(self, text: str) -> List[str]:
        tags = []
        for tag, matcher in self.matchers.items():
            try:
                if matcher(text):
                    tags.append(tag.value)
            except Exception as e:
                self.log.debug(f"Matcher for {tag.value} failed, skipping: {e}")
        return tags

    def analyze(self, identifier: str) -> List[str]:
        if identifier in self._cache:
            return self._cache[identifier]

        try:
            path = self.source_locator(identifier)
            if not path or not pathlib.Path(path).is_file():
                self.log.info(f"No source file found for {identifier}")
                return self._remember(identifier, [DiagnosticTag.NO_SOURCE.value])
            code = pathlib.Path(path).read_text(encoding="utf-8")
            if code == "":
                return self._remember(identifier, [DiagnosticTag.EMPTY_SOURCE.value])
        except Exception as e:
            self.log.warning(f"Could not inspect {identifier}: {type(e).__name__}: {e}")
            return self._remember(identifier, [DiagnosticTag.REFLECTION_FAILED.value])

        tags = self.classify(code)
        self.log.info(f"Diagnostics for {identifier}: {tags or 'none'}")
        return self._remember(identifier, tags)

    def _remember(self, identifier: str, tags: List[str]) -> List[str]:
        self._cache[identifier] = tags
        return tags
