from typing import Dict, Iterable, List, Sequence, Tuple

from domain.errors import OrderingError

class SetlistOrdering:
    """
    セットリスト内の position を 1..N の連番に保つ責務を持つ。
    ここでは新しい position の計画だけを行い、書き込みはリポジトリが行う。
    """

    def next_position(self, positions: Iterable[int]) -> int:
        """末尾追加の position。空のセットリストなら 1。"""
        return max(positions, default=0) + 1

    def compact(self, rows: Sequence[Tuple[str, int]]) -> Dict[str, int]:
        """
        削除後の詰め直し。rows は残った (id, position)。
        現在の並び順を保ったまま 1..N を割り当て、変化する行だけを返す。
        """
        ordered = sorted(rows, key=lambda r: (r[1], r[0]))
        return {
            row_id: index
            for index, (row_id, position) in enumerate(ordered, start=1)
            if position != index
        }

    def reorder(self, current: Sequence[Tuple[str, int]], ordered_ids: Sequence[str]) -> Dict[str, int]:
        """
        呼び出し側が指定した完全な並びで 1..N を振り直す。
        ordered_ids はセットリストの全行をちょうど一度ずつ含む必要がある。
        """
        current_ids = [row_id for row_id, _ in current]
        if len(set(ordered_ids)) != len(ordered_ids):
            raise OrderingError("Reorder contains duplicate song ids")
        if set(ordered_ids) != set(current_ids):
            missing = sorted(set(current_ids) - set(ordered_ids))
            unknown = sorted(set(ordered_ids) - set(current_ids))
            raise OrderingError(
                f"Reorder must list every song in the setlist exactly once (missing={missing}, unknown={unknown})"
            )

        positions = dict(current)
        return {
            row_id: index
            for index, row_id in enumerate(ordered_ids, start=1)
            if positions[row_id] != index
        }

    def assert_contiguous(self, positions: Iterable[int]) -> None:
        """position が 1..N の重複無し連番でなければ OrderingError。"""
        values: List[int] = sorted(positions)
        expected = list(range(1, len(values) + 1))
        if values != expected:
            raise OrderingError(f"Positions are not contiguous: {values}")
