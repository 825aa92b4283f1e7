"""Hypothesis strategies for llmcc contracts and candidates."""

from hypothesis import strategies as st

from llmcc.engine.invariants import InvariantEvaluator
from llmcc.models.contract import Contract
from llmcc.models.verdict import Violation

identifier = st.text(
    min_size=1,
    max_size=40,
    alphabet=st.characters(whitelist_categories=("Ll", "Lu", "Nd"), whitelist_characters="_"),
)

invariant_text = st.sampled_from(
    [
        "len(output) <= 80",
        'matches(output, "^[a-z0-9-]+$")',
        "output.success == true",
        "output.data.user.id > 0",
        "not is_null(output.metadata.timestamp)",
        "len(output) > 0",
    ]
)

error_code = st.from_regex(r"[A-Z]{2,8}_[A-Z]{2,8}", fullmatch=True)

contracts = st.builds(
    Contract,
    name=identifier,
    version=st.from_regex(r"v[0-9]{1,2}", fullmatch=True),
    intent=st.text(max_size=80),
    invariants=st.lists(invariant_text, max_size=4).map(tuple),
    error_codes=st.lists(error_code, max_size=3).map(tuple),
)

# Strings that exercise every repair category: separators, symbols,
# unicode, uppercase and excess length.
slug_candidates = st.text(
    max_size=200,
    alphabet=st.characters(
        whitelist_categories=("Ll", "Lu", "Nd", "Pd", "Po", "Zs", "So"),
        whitelist_characters="_.-",
    ),
)

# Violation sets a repairer may be handed, including length bounds at and
# below zero.
length_violations = st.builds(
    Violation,
    source=st.just("schema"),
    message=st.just("too long"),
    path=st.just("$"),
    keyword=st.just("maxLength"),
    limit=st.integers(min_value=-3, max_value=120),
)

invariant_violations = st.sampled_from(
    ["len(output) < 0", "len(output) <= 10", 'matches(output, "^[a-z0-9-]+$")', "0 >= len(output)"]
).map(lambda source: InvariantEvaluator([source]).evaluate("X" * 200).violations[0])

pattern_violations = st.just(
    Violation(source="schema", message="bad", path="$", keyword="pattern", pattern="^[a-z-]+$")
)

violation_sets = st.lists(
    st.one_of(length_violations, invariant_violations, pattern_violations),
    max_size=4,
)
