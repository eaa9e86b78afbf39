"""
Tests for probes — layering, the evaluation pipeline and state queries.
"""

import platform
import time

import pytest

from dek.core.errors import ProbeCycleError, QueryError, StructuralError, UnknownProbeDependencyError
from dek.core.models.probe import ProbeDefinition, ProbeResult, RewriteRule
from dek.core.persistence.cache import FileCache
from dek.core.probes import ProbeEvaluator, layer_probes
from dek.core.probes.evaluator import probe_cache_key, run_probe_command
from dek.core.probes.graph import transitive_closure
from dek.core.probes.query import StateQuery, apply_operator, is_operator, lookup


def _probe(name: str, **kwargs) -> ProbeDefinition:
    return ProbeDefinition(name=name, **kwargs)


# ── Layering ─────────────────────────────────────────────────────────


class TestLayering:
    def test_chain(self):
        defs = [
            _probe("c", deps=["b"]),
            _probe("a"),
            _probe("b", deps=["a"]),
        ]
        assert layer_probes(defs) == [[1], [2], [0]]

    def test_independent_share_a_layer(self):
        defs = [_probe("x"), _probe("y"), _probe("z", deps=["x", "y"])]
        assert layer_probes(defs) == [[0, 1], [2]]

    def test_duplicate_dep_counted_once(self):
        defs = [_probe("a"), _probe("b", deps=["a", "a"])]
        assert layer_probes(defs) == [[0], [1]]

    def test_unknown_dependency(self):
        with pytest.raises(UnknownProbeDependencyError) as exc:
            layer_probes([_probe("a", deps=["ghost"])])
        assert exc.value.probe == "a"
        assert exc.value.dependency == "ghost"

    def test_cycle(self):
        defs = [_probe("ok"), _probe("a", deps=["b"]), _probe("b", deps=["a"])]
        with pytest.raises(ProbeCycleError) as exc:
            layer_probes(defs)
        assert exc.value.remaining == ["a", "b"]

    def test_duplicate_name(self):
        with pytest.raises(StructuralError, match="Duplicate"):
            layer_probes([_probe("a"), _probe("a")])

    def test_empty(self):
        assert layer_probes([]) == []

    def test_transitive_closure_keeps_definition_order(self):
        defs = [
            _probe("a"),
            _probe("unused"),
            _probe("b", deps=["a"]),
            _probe("c", deps=["b"]),
        ]
        names = [d.name for d in transitive_closure(defs, ["c"])]
        assert names == ["a", "b", "c"]


# ── Evaluation pipeline ──────────────────────────────────────────────


class TestEvaluate:
    def test_command_output_trimmed(self, cache: FileCache):
        results = ProbeEvaluator(cache).evaluate(
            [_probe("greet", cmd="echo '  hello  '; echo noise >&2")]
        )
        assert results["greet"].raw == "hello"

    def test_failing_command_is_empty(self, cache: FileCache):
        results = ProbeEvaluator(cache).evaluate([_probe("bad", cmd="exit 3")])
        assert results["bad"].raw == ""

    def test_dependency_chain_context(self, cache: FileCache):
        defs = [
            _probe("a", cmd="echo 1"),
            _probe("b", deps=["a"], expr="{{ a }}2"),
            _probe("c", deps=["b"], expr="{{ b }}3"),
        ]
        results = ProbeEvaluator(cache).evaluate(defs)
        assert results["c"].raw == "123"
        assert list(results) == ["a", "b", "c"]

    def test_dash_names_use_underscore(self, cache: FileCache):
        defs = [
            _probe("cpu-arch", cmd="echo x86_64"),
            _probe("arch", deps=["cpu-arch"], expr="{{ cpu_arch }}"),
        ]
        assert ProbeEvaluator(cache).evaluate(defs)["arch"].raw == "x86_64"

    def test_expression_sees_raw(self, cache: FileCache):
        defs = [_probe("up", cmd="echo linux", expr="{{ raw | upper }}")]
        assert ProbeEvaluator(cache).evaluate(defs)["up"].raw == "LINUX"

    def test_expression_undefined_is_empty(self, cache: FileCache):
        defs = [_probe("e", expr="[{{ nothing.here }}]")]
        assert ProbeEvaluator(cache).evaluate(defs)["e"].raw == "[]"

    def test_expression_error_is_empty(self, cache: FileCache):
        defs = [_probe("e", expr="{{ 1 / 0 }}")]
        assert ProbeEvaluator(cache).evaluate(defs)["e"].raw == ""

    def test_expression_with_json_input(self, cache: FileCache):
        defs = [_probe("j", cmd="""echo '{"id": "arch"}'""", expr="{{ raw.id }}", parse_json=True)]
        assert ProbeEvaluator(cache).evaluate(defs)["j"].raw == "arch"

    def test_parallel_layer(self, cache: FileCache):
        defs = [_probe(f"p{i}", cmd="sleep 0.5; echo done") for i in range(4)]
        start = time.monotonic()
        results = ProbeEvaluator(cache).evaluate(defs)
        assert time.monotonic() - start < 1.8
        assert all(r.raw == "done" for r in results.values())

    def test_cycle_fails_before_commands(self, cache: FileCache, tmp_path):
        marker = tmp_path / "ran"
        defs = [
            _probe("side", cmd=f"touch {marker}"),
            _probe("a", deps=["b"]),
            _probe("b", deps=["a"]),
        ]
        with pytest.raises(ProbeCycleError):
            ProbeEvaluator(cache).evaluate(defs)
        assert not marker.exists()

    def test_unknown_dep_fails_before_commands(self, cache: FileCache, tmp_path):
        marker = tmp_path / "ran"
        defs = [_probe("side", cmd=f"touch {marker}"), _probe("a", deps=["nope"])]
        with pytest.raises(UnknownProbeDependencyError):
            ProbeEvaluator(cache).evaluate(defs)
        assert not marker.exists()

    @pytest.mark.skipif(platform.system() != "Linux", reason="uname output differs")
    def test_os_probe(self, cache: FileCache):
        defs = [
            _probe(
                "os",
                cmd="uname -s",
                rewrite=[RewriteRule(pattern="Linux", value="linux")],
                templates={"label": "{{ original }} ({{ raw }})"},
            )
        ]
        result = ProbeEvaluator(cache).evaluate(defs)["os"]
        assert result.raw == "linux"
        assert result.original == "Linux"
        assert result.templates["label"] == "Linux (linux)"


class TestRewrite:
    def test_first_match_wins(self, cache: FileCache):
        defs = [
            _probe(
                "distro",
                cmd="echo Ubuntu 24.04",
                rewrite=[
                    RewriteRule(pattern="^Debian", value="debian"),
                    RewriteRule(pattern="Ubuntu", value="ubuntu"),
                    RewriteRule(pattern=".*", value="other"),
                ],
            )
        ]
        result = ProbeEvaluator(cache).evaluate(defs)["distro"]
        assert result.raw == "ubuntu"
        assert result.original == "Ubuntu 24.04"

    def test_no_match_leaves_original_unset(self, cache: FileCache):
        defs = [_probe("x", cmd="echo abc", rewrite=[RewriteRule(pattern="zzz", value="z")])]
        result = ProbeEvaluator(cache).evaluate(defs)["x"]
        assert result.raw == "abc"
        assert result.original is None
        assert result.value("original") == "abc"

    def test_rewrite_applies_to_expression_output(self, cache: FileCache):
        defs = [
            _probe(
                "x",
                expr="{{ 'mac' ~ 'os' }}",
                rewrite=[RewriteRule(pattern="^macos$", value="darwin")],
            )
        ]
        result = ProbeEvaluator(cache).evaluate(defs)["x"]
        assert (result.raw, result.original) == ("darwin", "macos")

    def test_bad_pattern_skipped(self, cache: FileCache):
        defs = [
            _probe(
                "x",
                cmd="echo abc",
                rewrite=[RewriteRule(pattern="(", value="broken"), RewriteRule(pattern="b", value="ok")],
            )
        ]
        assert ProbeEvaluator(cache).evaluate(defs)["x"].raw == "ok"

    def test_dependents_see_rewritten_values(self, cache: FileCache):
        defs = [
            _probe("c", deps=["b", "a"], expr="{{ b }}/{{ a }}/{{ a.original }}"),
            _probe("a", cmd="echo Linux", rewrite=[RewriteRule(pattern="^Linux$", value="linux")]),
            _probe(
                "b",
                deps=["a"],
                expr="{{ a }}-box",
                rewrite=[RewriteRule(pattern="^linux-box$", value="lb")],
            ),
        ]
        layer_of = {i: n for n, layer in enumerate(layer_probes(defs)) for i in layer}
        assert layer_of[0] > layer_of[1]
        assert layer_of[0] > layer_of[2]

        results = ProbeEvaluator(cache).evaluate(defs)
        assert (results["a"].raw, results["a"].original) == ("linux", "Linux")
        assert (results["b"].raw, results["b"].original) == ("lb", "linux-box")
        assert results["c"].raw == "lb/linux/Linux"


class TestTemplatesAndJson:
    def test_json_parsed(self, cache: FileCache):
        defs = [_probe("cfg", cmd="""echo '{"a": [1, 2]}'""", parse_json=True)]
        result = ProbeEvaluator(cache).evaluate(defs)["cfg"]
        assert result.parsed == {"a": [1, 2]}
        assert result.raw_value == {"a": [1, 2]}

    def test_invalid_json_stays_text(self, cache: FileCache):
        defs = [_probe("cfg", cmd="echo not-json", parse_json=True)]
        result = ProbeEvaluator(cache).evaluate(defs)["cfg"]
        assert result.parsed is None
        assert result.raw_value == "not-json"

    def test_template_over_json(self, cache: FileCache):
        defs = [
            _probe(
                "cfg",
                cmd="""echo '{"name": "box"}'""",
                parse_json=True,
                templates={"host": "{{ raw.name }}.lan"},
            )
        ]
        assert ProbeEvaluator(cache).evaluate(defs)["cfg"].templates["host"] == "box.lan"

    def test_strict_template_failure_is_empty(self, cache: FileCache):
        defs = [_probe("x", cmd="echo v", templates={"bad": "{{ undefined_name }}", "ok": "[{{ raw }}]"})]
        templates = ProbeEvaluator(cache).evaluate(defs)["x"].templates
        assert templates == {"bad": "", "ok": "[v]"}

    def test_dependency_template_variant(self, cache: FileCache):
        defs = [
            _probe("os", cmd="echo linux", templates={"pretty": "Linux"}),
            _probe("msg", deps=["os"], expr="{{ os.pretty }}/{{ os.raw }}/{{ os.original }}"),
        ]
        assert ProbeEvaluator(cache).evaluate(defs)["msg"].raw == "Linux/linux/linux"


# ── Command cache ────────────────────────────────────────────────────


class TestProbeCache:
    def test_ttl_reuses_output(self, cache: FileCache, tmp_path):
        counter = tmp_path / "count"
        cmd = f"echo x >> {counter}; wc -l < {counter}"
        defs = [_probe("n", cmd=cmd, ttl="1h")]

        first = ProbeEvaluator(cache).evaluate(defs)["n"].raw
        second = ProbeEvaluator(cache).evaluate(defs)["n"].raw
        assert first == second == "1"
        assert cache.get(probe_cache_key("n")) == b"1"

    def test_no_ttl_runs_every_time(self, cache: FileCache, tmp_path):
        counter = tmp_path / "count"
        defs = [_probe("n", cmd=f"echo x >> {counter}; wc -l < {counter}")]
        ProbeEvaluator(cache).evaluate(defs)
        assert ProbeEvaluator(cache).evaluate(defs)["n"].raw == "2"

    def test_bad_ttl_ignored(self, cache: FileCache):
        defs = [_probe("n", cmd="echo ok", ttl="soon")]
        assert ProbeEvaluator(cache).evaluate(defs)["n"].raw == "ok"
        assert cache.get(probe_cache_key("n")) is None

    def test_evaluate_subset(self, cache: FileCache, tmp_path):
        marker = tmp_path / "ran"
        defs = [
            _probe("a", cmd="echo a"),
            _probe("other", cmd=f"touch {marker}"),
            _probe("b", deps=["a"], expr="{{ a }}b"),
        ]
        results = ProbeEvaluator(cache).evaluate_subset(defs, ["b"])
        assert list(results) == ["a", "b"]
        assert results["b"].raw == "ab"
        assert not marker.exists()

    def test_timeout_yields_empty(self):
        assert run_probe_command("sleep 5; echo late", timeout=0.2) == ""


# ── Queries ──────────────────────────────────────────────────────────


@pytest.fixture
def results() -> dict[str, ProbeResult]:
    return {
        "os": ProbeResult(name="os", raw="linux", original="Linux", templates={"pretty": "GNU/Linux"}),
        "shell": ProbeResult(name="shell", raw="zsh"),
    }


class TestQuery:
    def test_parse(self):
        assert StateQuery.parse("os") == StateQuery("os")
        assert StateQuery.parse("os.pretty") == StateQuery("os", "pretty")
        assert StateQuery.parse("os.pretty").label == "os.pretty"

    def test_lookup_variants(self, results):
        assert lookup(results, StateQuery("os")) == "linux"
        assert lookup(results, StateQuery("os", "raw")) == "linux"
        assert lookup(results, StateQuery("os", "original")) == "Linux"
        assert lookup(results, StateQuery("os", "pretty")) == "GNU/Linux"
        assert lookup(results, StateQuery("shell", "original")) == "zsh"

    def test_unknown_name(self, results):
        with pytest.raises(QueryError, match="Unknown state probe"):
            lookup(results, StateQuery("kernel"))

    def test_unknown_variant(self, results):
        with pytest.raises(QueryError, match="Unknown variant"):
            lookup(results, StateQuery("os", "nope"))

    def test_is_operator(self):
        assert is_operator(["is", "x"])
        assert not is_operator([])
        assert not is_operator(["equals"])

    def test_is_and_isnot(self):
        assert apply_operator("linux", ["is", "linux"]).exit_code == 0
        assert apply_operator("linux", ["is", "macos"]).exit_code == 1
        assert apply_operator("linux", ["isnot", "macos"]).exit_code == 0
        assert apply_operator("linux", ["isnot", "linux"]).exit_code == 1

    def test_get(self):
        assert apply_operator("zsh", ["get", "bash", "zsh", "sh"]).output == "zsh"
        assert apply_operator("fish", ["get", "bash", "zsh", "sh"]).output == "sh"

    def test_get_needs_default(self):
        with pytest.raises(QueryError):
            apply_operator("zsh", ["get", "zsh"])

    def test_is_needs_operand(self):
        with pytest.raises(QueryError):
            apply_operator("zsh", ["is"])
