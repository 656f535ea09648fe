def format_lines_with_pagination(
    content: str,
    offset: int = 1,
    limit: int = 500,
) -> str:
    lines = content.split("\n")
    total_lines = len(lines)

    offset = max(1, min(offset, total_lines))
    start = offset - 1
    end = min(start + limit, total_lines)

    numbered = [f"{start + i + 1:>6}|{line}" for i, line in enumerate(lines[start:end])]

    header = f"[{total_lines} lines]"
    if start > 0 or end < total_lines:
        header = f"[{total_lines} lines, showing {offset}-{end}]"

    return header + "\n" + "\n".join(numbered)
