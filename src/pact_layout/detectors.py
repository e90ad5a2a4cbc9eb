"""
Structural pattern detection.

Each detector inspects a diagram's adjacency (never its visual
attributes) and returns zero or more ``PatternMatch`` values binding
template roles to diagram element ids. Detectors are pure: the same
diagram always yields the same matches in the same order.

Role mappings and every counting table are insertion-ordered dicts, and
"most connected" searches only replace the current best on a strictly
larger count, so ties go to the element encountered first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from pact_layout.models import (
    ClassDiagram,
    ClassEdge,
    Diagram,
    EdgeType,
    FlowDiagram,
    MessageType,
    NodeShape,
    SequenceDiagram,
    StateDiagram,
    StateType,
    messages_of,
)
from pact_layout.patterns import PatternRegistry, PatternType

MAX_REPEATED_ROLES = 4


@dataclass
class PatternMatch:
    """A detected pattern: role -> element id, plus a score in [0, 1]."""
    pattern: PatternType
    roles: dict[str, str] = field(default_factory=dict)
    score: float = 0.0

    def bound_ids(self) -> set[str]:
        return set(self.roles.values())

    def to_dict(self) -> dict[str, Any]:
        return {"pattern": self.pattern.value, "roles": dict(self.roles),
                "score": round(self.score, 4)}


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def _group(pairs: Sequence[tuple[str, str]]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)
    return grouped


def _most_connected(grouped: dict[str, list[str]], eligible=None) -> tuple[str, int]:
    best, best_count = "", 0
    for key, values in grouped.items():
        if eligible is not None and not eligible(key):
            continue
        if len(values) > best_count:
            best, best_count = key, len(values)
    return best, best_count


def _numbered(roles: dict[str, str], prefix: str, ids: Sequence[str]) -> None:
    for i, nid in enumerate(ids[:MAX_REPEATED_ROLES]):
        roles[f"{prefix}_{i}"] = nid


class _Detector:
    def __init__(self, registry: PatternRegistry) -> None:
        self._registry = registry

    def _keep(self, matches: list[PatternMatch | None]) -> list[PatternMatch]:
        return [m for m in matches if m is not None and m.pattern in self._registry]


# ---------------------------------------------------------------------------
# Class diagrams
# ---------------------------------------------------------------------------

class ClassPatternDetector(_Detector):

    def detect(self, diagram: ClassDiagram) -> list[PatternMatch]:
        known = set(diagram.node_ids())
        edges = [e for e in diagram.edges if e.from_id in known and e.to_id in known]

        def of_type(*types: EdgeType) -> list[ClassEdge]:
            return [e for e in edges if e.type in types]

        inheritance = of_type(EdgeType.INHERITANCE)
        return self._keep([
            self.detect_inheritance_tree(len(diagram.nodes), inheritance),
            self.detect_interface_impl(diagram, of_type(EdgeType.IMPLEMENTATION)),
            self.detect_composition(of_type(EdgeType.COMPOSITION) + of_type(EdgeType.AGGREGATION)),
            self.detect_diamond(len(diagram.nodes), inheritance),
        ])

    @staticmethod
    def detect_inheritance_tree(node_count: int, edges: list[ClassEdge]) -> PatternMatch | None:
        if len(edges) < 2:
            return None
        children = _group([(e.to_id, e.from_id) for e in edges])
        parent, count = _most_connected(children)
        if count < 2:
            return None
        roles = {"parent": parent}
        _numbered(roles, "child", children[parent])
        return PatternMatch(PatternType.INHERITANCE_TREE, roles, _clamp(count / node_count))

    @staticmethod
    def detect_interface_impl(diagram: ClassDiagram, edges: list[ClassEdge]) -> PatternMatch | None:
        if len(edges) < 2:
            return None
        interfaces = {n.id for n in diagram.nodes if n.stereotype == "interface"}
        implementers = _group([(e.to_id, e.from_id) for e in edges])
        iface, count = _most_connected(implementers, lambda nid: nid in interfaces)
        if count < 2:
            return None
        roles = {"interface": iface}
        _numbered(roles, "impl", implementers[iface])
        return PatternMatch(PatternType.INTERFACE_IMPL, roles, 0.9)

    @staticmethod
    def detect_composition(edges: list[ClassEdge]) -> PatternMatch | None:
        if len(edges) < 2:
            return None
        parts = _group([(e.from_id, e.to_id) for e in edges])
        owner, count = _most_connected(parts)
        if count < 2:
            return None
        roles = {"owner": owner}
        _numbered(roles, "part", parts[owner])
        return PatternMatch(PatternType.COMPOSITION, roles, 0.85)

    @staticmethod
    def detect_diamond(node_count: int, edges: list[ClassEdge]) -> PatternMatch | None:
        """A node with two parents that share a parent of their own."""
        if node_count < 4 or len(edges) < 4:
            return None
        parents = _group([(e.from_id, e.to_id) for e in edges])
        for bottom, bottom_parents in parents.items():
            if len(bottom_parents) < 2:
                continue
            for i in range(len(bottom_parents)):
                for j in range(i + 1, len(bottom_parents)):
                    left, right = bottom_parents[i], bottom_parents[j]
                    for top in parents.get(left, []):
                        if top in parents.get(right, []):
                            return PatternMatch(
                                PatternType.DIAMOND,
                                {"top": top, "left": left, "right": right, "bottom": bottom},
                                1.0,
                            )
        return None


# ---------------------------------------------------------------------------
# State diagrams
# ---------------------------------------------------------------------------

class StatePatternDetector(_Detector):

    def detect(self, diagram: StateDiagram) -> list[PatternMatch]:
        known = set(diagram.node_ids())
        pairs = [(t.from_id, t.to_id) for t in diagram.transitions
                 if t.from_id in known and t.to_id in known]
        outgoing = _group(pairs)
        incoming = _group([(dst, src) for src, dst in pairs])

        initial = next((s.id for s in diagram.states if s.type is StateType.INITIAL), "")
        final = next((s.id for s in diagram.states if s.type is StateType.FINAL), "")
        atomic = [s.id for s in diagram.states if s.type is StateType.ATOMIC]

        return self._keep([
            self.detect_linear(atomic, initial, final, outgoing),
            self.detect_binary_choice(atomic, outgoing),
            self.detect_loop(atomic, outgoing),
            self.detect_star(atomic, outgoing, incoming),
        ])

    @staticmethod
    def detect_linear(
        states: list[str], initial: str, final: str, outgoing: dict[str, list[str]],
    ) -> PatternMatch | None:
        """Follow single-exit states from the initial state's only target."""
        if len(states) < 2 or not initial:
            return None
        targets = outgoing.get(initial, [])
        if len(targets) != 1:
            return None
        chain: list[str] = []
        current = targets[0]
        while current and current != final and current not in chain:
            chain.append(current)
            nxt = outgoing.get(current, [])
            if len(nxt) != 1:
                break
            current = nxt[0]
        if len(chain) < 2:
            return None
        roles = {"initial": initial}
        _numbered(roles, "state", chain)
        if final:
            roles["final"] = final
        return PatternMatch(PatternType.LINEAR_STATES, roles, _clamp(len(chain) / len(states)))

    @staticmethod
    def detect_binary_choice(states: list[str], outgoing: dict[str, list[str]]) -> PatternMatch | None:
        for source in states:
            targets = outgoing.get(source, [])
            if len(targets) != 2:
                continue
            true_branch, false_branch = targets
            true_next = outgoing.get(true_branch, [])
            false_next = outgoing.get(false_branch, [])
            for target in true_next:
                if target in false_next:
                    return PatternMatch(PatternType.BINARY_CHOICE, {
                        "source": source,
                        "true_branch": true_branch,
                        "false_branch": false_branch,
                        "target": target,
                    }, 1.0)
        return None

    @staticmethod
    def detect_loop(states: list[str], outgoing: dict[str, list[str]]) -> PatternMatch | None:
        """Walk forward from each state until an edge leads back to it."""
        for start in states:
            path = [start]
            visited: set[str] = set()
            current = start
            while True:
                targets = outgoing.get(current, [])
                if not targets:
                    break
                if start in targets and len(path) >= 2:
                    roles = {"start": path[0]}
                    if len(path) >= 3:
                        roles["middle"] = path[len(path) // 2]
                    roles["end"] = path[-1]
                    return PatternMatch(PatternType.STATE_LOOP, roles, 0.9)
                nxt = next((t for t in targets if t not in visited and t != start), None)
                if nxt is None:
                    break
                visited.add(nxt)
                path.append(nxt)
                current = nxt
        return None

    @staticmethod
    def detect_star(
        states: list[str], outgoing: dict[str, list[str]], incoming: dict[str, list[str]],
    ) -> PatternMatch | None:
        for center in states:
            out = outgoing.get(center, [])
            into = incoming.get(center, [])
            if len(out) + len(into) < 4:
                continue
            peripherals = [s for s in dict.fromkeys(out + into) if s != center]
            placed = peripherals[:4]
            if len(placed) < 3:
                continue
            roles = {"center": center}
            for slot, sid in zip(("top", "right", "bottom", "left"), placed):
                roles[slot] = sid
            return PatternMatch(PatternType.STAR_TOPOLOGY, roles, len(placed) / 4.0)
        return None


# ---------------------------------------------------------------------------
# Flow diagrams
# ---------------------------------------------------------------------------

class FlowPatternDetector(_Detector):

    def detect(self, diagram: FlowDiagram) -> list[PatternMatch]:
        shapes = {n.id: n.shape for n in diagram.nodes}
        pairs = [(e.from_id, e.to_id) for e in diagram.edges
                 if e.from_id in shapes and e.to_id in shapes]
        outgoing = _group(pairs)
        incoming = _group([(dst, src) for src, dst in pairs])

        starts, ends, decisions, processes = [], [], [], []
        for n in diagram.nodes:
            out_n, in_n = len(outgoing.get(n.id, [])), len(incoming.get(n.id, []))
            if n.shape is NodeShape.TERMINAL:
                if out_n > 0 and in_n == 0:
                    starts.append(n.id)
                elif in_n > 0 and out_n == 0:
                    ends.append(n.id)
            elif n.shape is NodeShape.DECISION:
                decisions.append(n.id)
            elif n.shape is NodeShape.PROCESS:
                processes.append(n.id)

        return self._keep([
            self.detect_if_else(decisions, shapes, outgoing),
            self.detect_while_loop(decisions, outgoing),
            self.detect_sequential(starts, ends, processes, outgoing),
        ])

    @staticmethod
    def detect_if_else(
        decisions: list[str], shapes: dict[str, NodeShape], outgoing: dict[str, list[str]],
    ) -> PatternMatch | None:
        for dec in decisions:
            targets = outgoing.get(dec, [])
            if len(targets) != 2:
                continue
            yes, no = targets
            if shapes.get(yes) is not NodeShape.PROCESS or shapes.get(no) is not NodeShape.PROCESS:
                continue
            no_next = outgoing.get(no, [])
            for merge in outgoing.get(yes, []):
                if merge in no_next:
                    return PatternMatch(PatternType.IF_ELSE, {
                        "decision": dec,
                        "true_process": yes,
                        "false_process": no,
                        "merge": merge,
                    }, 1.0)
        return None

    @staticmethod
    def detect_while_loop(decisions: list[str], outgoing: dict[str, list[str]]) -> PatternMatch | None:
        for dec in decisions:
            targets = outgoing.get(dec, [])
            if len(targets) != 2:
                continue
            for body in targets:
                if dec in outgoing.get(body, []):
                    roles = {"condition": dec, "body": body}
                    exit_id = next((t for t in targets if t != body), "")
                    if exit_id:
                        roles["exit"] = exit_id
                    return PatternMatch(PatternType.WHILE_LOOP, roles, 0.95)
        return None

    @staticmethod
    def detect_sequential(
        starts: list[str], ends: list[str], processes: list[str], outgoing: dict[str, list[str]],
    ) -> PatternMatch | None:
        if not starts:
            return None
        start = starts[0]
        chain: list[str] = []
        current = start
        while True:
            targets = outgoing.get(current, [])
            if len(targets) != 1 or targets[0] in chain:
                break
            current = targets[0]
            chain.append(current)
        if len(chain) < 2:
            return None
        roles = {"start": start}
        _numbered(roles, "process", chain)
        if ends:
            roles["end"] = ends[0]
        return PatternMatch(PatternType.SEQUENTIAL, roles,
                            _clamp(len(chain) / (len(processes) + 2)))


# ---------------------------------------------------------------------------
# Sequence diagrams
# ---------------------------------------------------------------------------

class SequencePatternDetector(_Detector):

    def detect(self, diagram: SequenceDiagram) -> list[PatternMatch]:
        known = set(diagram.node_ids())
        messages = [m for m in messages_of(diagram.events)
                    if m.from_id in known and m.to_id in known]
        if len(messages) < 2:
            return []
        pairs = [(m.from_id, m.to_id, m.message_type) for m in messages]
        return self._keep([
            self.detect_request_response(pairs),
            self.detect_callback(pairs),
            self.detect_chain(pairs, len(diagram.participants)),
        ])

    @staticmethod
    def detect_request_response(messages: list[tuple[str, str, MessageType]]) -> PatternMatch | None:
        """A message immediately answered by a return in the opposite direction."""
        for (src, dst, _), (rsrc, rdst, rtype) in zip(messages, messages[1:]):
            if src == rdst and dst == rsrc and rtype is MessageType.RETURN:
                return PatternMatch(PatternType.REQUEST_RESPONSE,
                                    {"caller": src, "callee": dst}, 1.0)
        return None

    @staticmethod
    def detect_callback(messages: list[tuple[str, str, MessageType]]) -> PatternMatch | None:
        """Three consecutive messages bouncing A -> B -> A -> B."""
        for i in range(len(messages) - 2):
            a1, b1, _ = messages[i]
            a2, b2, _ = messages[i + 1]
            a3, b3, _ = messages[i + 2]
            if a1 == b2 and b1 == a2 and a2 == b3 and b2 == a3:
                return PatternMatch(PatternType.CALLBACK,
                                    {"initiator": a1, "handler": b1}, 0.95)
        return None

    @staticmethod
    def detect_chain(
        messages: list[tuple[str, str, MessageType]], participant_count: int,
    ) -> PatternMatch | None:
        """Forward delegation A -> B -> C ... ignoring returns and revisits."""
        if len(messages) < 3 or participant_count < 3:
            return None
        chain = [messages[0][0]]
        for src, dst, mtype in messages:
            if mtype is MessageType.RETURN:
                continue
            if src == chain[-1] and dst not in chain:
                chain.append(dst)
        if len(chain) < 3:
            return None
        roles: dict[str, str] = {}
        _numbered(roles, "node", chain)
        return PatternMatch(PatternType.CHAIN, roles, _clamp(len(chain) / participant_count))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def detect_patterns(diagram: Diagram, registry: PatternRegistry) -> list[PatternMatch]:
    """Run the detector for *diagram*'s kind."""
    if isinstance(diagram, ClassDiagram):
        return ClassPatternDetector(registry).detect(diagram)
    if isinstance(diagram, StateDiagram):
        return StatePatternDetector(registry).detect(diagram)
    if isinstance(diagram, FlowDiagram):
        return FlowPatternDetector(registry).detect(diagram)
    if isinstance(diagram, SequenceDiagram):
        return SequencePatternDetector(registry).detect(diagram)
    return []


def best_match(matches: Sequence[PatternMatch]) -> PatternMatch | None:
    """Highest positive score; the first match wins ties."""
    best: PatternMatch | None = None
    best_score = 0.0
    for m in matches:
        if m.score > best_score:
            best, best_score = m, m.score
    return best
