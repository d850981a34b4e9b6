from bootprof.analyzers.patterns import PATTERN_REGISTRY, PatternMatcher
from bootprof.schemas import DiagnosticTag


def test_registry_covers_all_signature_and_composite_tags():
    sentinels = {DiagnosticTag.NO_SOURCE, DiagnosticTag.EMPTY_SOURCE,
                 DiagnosticTag.REFLECTION_FAILED}
    assert set(PATTERN_REGISTRY) == set(DiagnosticTag) - sentinels


def test_classify_database_only():
    assert PatternMatcher().classify('cursor.execute("SELECT 1")') == ["database"]


def test_classify_preserves_registry_order():
    text = 'subprocess.run(["ls"])\nredis.Redis()\nos.environ["HOME"]'
    assert PatternMatcher().classify(text) == ["config", "redis", "subprocess"]


def test_count_in_loop():
    matcher = PatternMatcher()
    assert "count_in_loop" in matcher.classify("for i in range(len(items)):\n    pass")
    assert "count_in_loop" in matcher.classify("while queue.count(x) > 0:\n    pass")
    # a loop and a count call on unrelated lines do not qualify
    assert "count_in_loop" not in matcher.classify("n = len(items)\nfor item in items:\n    pass")


def test_potential_n1_query():
    matcher = PatternMatcher()
    assert "potential_n1_query" in matcher.classify("users = User.objects.all().filter(active=True)")
    assert "potential_n1_query" not in matcher.classify("users = session.get(User)")


def test_missing_source_yields_no_source():
    assert PatternMatcher(source_locator=lambda ident: None).analyze("app.Missing") == ["no_source"]


def test_empty_source(tmp_path):
    empty = tmp_path / "empty.py"
    empty.write_text("")
    matcher = PatternMatcher(source_locator=lambda ident: str(empty))
    assert matcher.analyze("app.Empty") == ["empty_source"]


def test_unloadable_class_yields_reflection_failed():
    assert PatternMatcher().analyze("no_such_module_xyz.Provider") == ["reflection_failed"]


def test_results_are_cached_per_identifier(tmp_path):
    source = tmp_path / "component.py"
    source.write_text("import logging\nlog = logging.getLogger(__name__)\n")
    calls = []

    def locate(identifier):
        calls.append(identifier)
        return str(source)

    matcher = PatternMatcher(source_locator=locate)
    assert matcher.analyze("app.Logged") == ["log"]
    assert matcher.analyze("app.Logged") == ["log"]
    assert calls == ["app.Logged"]


def test_failing_matcher_is_skipped():
    def explode(text):
        raise RuntimeError("bad matcher")

    matcher = PatternMatcher(matchers={
        DiagnosticTag.HTTP: explode,
        DiagnosticTag.DATABASE: PATTERN_REGISTRY[DiagnosticTag.DATABASE],
    })
    assert matcher.classify("conn.execute('x')") == ["database"]


def test_default_locator_reads_component_module():
    tags = PatternMatcher().analyze("fixtures.sample_components.AlphaComponent")
    assert "container" in tags
