"""
Report generator for audit results.

Generates:
- Markdown reports for human reading
- JSON reports for machine processing
- Recommendations based on issue patterns
- Rich console summary for the CLI
"""

import json
from collections import defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from ..core.models import AuditIssue, AuditResult, AuditType, Severity


SEVERITY_EMOJI = {
    "critical": "🔴",
    "high": "🟠",
    "medium": "🟡",
    "low": "🟢",
    "info": "🔵",
}

SEVERITY_STYLE = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
    "info": "blue",
}

SECTION_LIMIT = 10

PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def issue_to_markdown(issue: AuditIssue) -> str:
    """Одна проблема в виде Markdown блока."""
    emoji = SEVERITY_EMOJI.get(issue.severity.value, "")
    rule = f" `{issue.rule_id}`" if issue.rule_id else ""
    lines = [
        f"### {emoji} {issue.title}{rule}",
        f"**Line:** {issue.line} | **Type:** {issue.type} | "
        f"**Category:** {issue.category.value} | **Confidence:** {issue.confidence:.2f}",
        "",
        issue.description,
    ]
    if issue.code_snippet:
        lines.extend(["", "```", issue.code_snippet, "```"])
    if issue.suggestion:
        lines.extend(["", f"**Suggestion:** {issue.suggestion}"])
    if issue.impact:
        lines.append(f"**Impact:** {issue.impact}")
    return "\n".join(lines)


class ReportGenerator:
    """Генератор отчётов аудита."""

    def __init__(self, output_dir: Path = None):
        """
        Args:
            output_dir: Директория для сохранения отчётов (по умолчанию audit_reports/)
        """
        self.output_dir = Path(output_dir) if output_dir else Path("audit_reports")

    def write_report(
        self,
        result: AuditResult,
        format: str = "markdown",
        filename: Optional[str] = None,
        title: str = "Code Audit Report",
    ) -> str:
        """
        Сохранить отчёт в файл.

        Args:
            result: Результат аудита
            format: Формат отчёта ("markdown" или "json")
            filename: Имя файла (по умолчанию audit_report_<timestamp>.<ext>)
            title: Заголовок Markdown отчёта

        Returns:
            Путь к сгенерированному файлу
        """
        if format not in ("markdown", "json"):
            raise ValueError(f"Unsupported report format: {format}")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        extension = "json" if format == "json" else "md"
        if filename is None:
            timestamp_str = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"audit_report_{timestamp_str}.{extension}"
        filepath = self.output_dir / filename

        if format == "json":
            content = self.render_json(result)
        else:
            content = self.render_markdown(result, title=title)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(content)

        return str(filepath)

    def render_markdown(self, result: AuditResult, title: str = "Code Audit Report") -> str:
        """Markdown отчёт по результату аудита."""
        summary = result.summary
        lines = []

        # Header
        lines.append(f"# {title}")
        lines.append("")
        lines.append(f"**Date:** {result.timestamp}")
        lines.append(f"**Model:** {result.model}")
        lines.append(f"**Request:** `{result.request_id}`")
        lines.append("")

        # Executive Summary
        lines.append("## Executive Summary")
        lines.append("")
        lines.append(f"- **Total Issues:** {summary.total}")
        for severity in Severity:
            count = summary.count(severity)
            emoji = SEVERITY_EMOJI.get(severity.value, "")
            lines.append(f"- {emoji} **{severity.value.capitalize()}:** {count}")
        lines.append("")

        if summary.by_category:
            lines.append("## Issues by Category")
            for category, count in sorted(summary.by_category.items(), key=lambda x: -x[1]):
                lines.append(f"- **{category}:** {count}")
            lines.append("")

        # Coverage
        coverage = result.coverage
        lines.append("## Coverage")
        lines.append("")
        lines.append(f"- Lines analyzed: {coverage.lines_analyzed}")
        lines.append(f"- Functions analyzed: {coverage.functions_analyzed}")
        lines.append(f"- Complexity: {coverage.complexity}")
        lines.append("")

        for severity, heading in (
            (Severity.CRITICAL, "🔴 Critical Issues"),
            (Severity.HIGH, "🟠 High Priority Issues"),
        ):
            issues = [i for i in result.issues if i.severity == severity]
            if not issues:
                continue
            lines.append(f"## {heading}")
            lines.append("")
            for issue in issues[:SECTION_LIMIT]:
                lines.append(issue_to_markdown(issue))
                lines.append("")
            if len(issues) > SECTION_LIMIT:
                lines.append(
                    f"*... and {len(issues) - SECTION_LIMIT} more {severity.value} issues*"
                )
                lines.append("")

        others = [
            i for i in result.issues
            if i.severity not in (Severity.CRITICAL, Severity.HIGH)
        ]
        if others:
            lines.append("## Other Issues")
            lines.append("")
            for issue in others:
                emoji = SEVERITY_EMOJI.get(issue.severity.value, "")
                lines.append(f"- {emoji} Line {issue.line}: **{issue.title}** ({issue.type})")
            lines.append("")

        # Recommendations
        recommendations = self.generate_recommendations(result)
        if recommendations:
            lines.append("## Recommendations")
            lines.append("")
            for i, rec in enumerate(recommendations, 1):
                lines.append(f"{i}. **{rec['title']}**")
                lines.append(f"   - {rec['description']}")
                lines.append(f"   - Priority: {rec['priority']}")
                lines.append("")

        # Footer
        lines.append("---")
        lines.append(f"*Audit completed in {result.metrics.duration:.2f}ms*")

        return "\n".join(lines)

    def render_json(self, result: AuditResult) -> str:
        """JSON отчёт: результат аудита плюс рекомендации."""
        report_dict = result.to_dict()
        report_dict["recommendations"] = self.generate_recommendations(result)
        return json.dumps(report_dict, indent=2, ensure_ascii=False)

    def generate_recommendations(self, result: AuditResult) -> List[Dict[str, Any]]:
        """
        Генерация рекомендаций на основе паттернов проблем.

        Args:
            result: Результат аудита

        Returns:
            Список рекомендаций, отсортированный по приоритету
        """
        issues = result.issues
        recommendations = []

        issues_by_category = defaultdict(list)
        for issue in issues:
            issues_by_category[issue.category].append(issue)

        # 1. Critical security issues
        security_issues = issues_by_category.get(AuditType.SECURITY, [])
        critical_security = [i for i in security_issues if i.severity == Severity.CRITICAL]
        if critical_security:
            recommendations.append({
                "title": "Fix critical security vulnerabilities",
                "description": f"Found {len(critical_security)} critical security issues",
                "priority": "critical",
                "affected_issues": len(critical_security),
                "action": "Address these before deploying to production",
            })
        elif security_issues:
            recommendations.append({
                "title": "Review security findings",
                "description": f"Found {len(security_issues)} security issues",
                "priority": "high",
                "affected_issues": len(security_issues),
                "action": "Validate input handling, secrets and crypto usage",
            })

        # 2. Unfinished code
        completeness_issues = issues_by_category.get(AuditType.COMPLETENESS, [])
        markers = [
            i for i in completeness_issues
            if i.type in ("todo_comment", "fixme_comment", "hack_comment")
        ]
        if markers:
            recommendations.append({
                "title": "Resolve TODO/FIXME/HACK markers",
                "description": f"Found {len(markers)} unfinished code markers",
                "priority": "medium",
                "affected_issues": len(markers),
                "action": "Finish or track the outstanding work",
            })
        stubs = [i for i in completeness_issues if i not in markers]
        if stubs:
            recommendations.append({
                "title": "Complete unfinished implementations",
                "description": f"Found {len(stubs)} incomplete functions or missing error handling",
                "priority": "high",
                "affected_issues": len(stubs),
                "action": "Implement empty functions and add error handling",
            })

        # 3. Performance
        performance_issues = issues_by_category.get(AuditType.PERFORMANCE, [])
        if performance_issues:
            priority = "high" if any(
                i.severity in (Severity.CRITICAL, Severity.HIGH) for i in performance_issues
            ) else "medium"
            recommendations.append({
                "title": "Optimize performance hot spots",
                "description": f"Found {len(performance_issues)} performance issues",
                "priority": priority,
                "affected_issues": len(performance_issues),
                "action": "Start with nested loops and blocking I/O",
            })

        # 4. Technical debt
        debt = result.suggestions.technical_debt
        if debt:
            recommendations.append({
                "title": "Reduce technical debt",
                "description": f"Found {len(debt)} quality and architecture issues",
                "priority": "low",
                "affected_issues": len(debt),
                "action": "Schedule refactoring of the affected code",
            })

        # 5. Quick wins
        quick_wins = result.suggestions.quick_wins
        if quick_wins:
            recommendations.append({
                "title": "Take the quick wins",
                "description": f"{len(quick_wins)} issues are low effort to fix",
                "priority": "medium",
                "affected_issues": len(quick_wins),
                "action": "Fix low effort issues first",
            })

        recommendations.sort(key=lambda x: PRIORITY_ORDER.get(x["priority"], 99))
        return recommendations

    def print_summary(self, result: AuditResult, console: Optional[Console] = None) -> None:
        """Вывести краткую сводку в консоль."""
        console = console or Console()
        summary = result.summary

        table = Table(title=f"Audit Summary ({summary.total} issues, model: {result.model})")
        table.add_column("Severity")
        table.add_column("Count", justify="right")
        for severity in Severity:
            emoji = SEVERITY_EMOJI.get(severity.value, "")
            table.add_row(
                f"{emoji} {severity.value.capitalize()}",
                str(summary.count(severity)),
                style=SEVERITY_STYLE[severity.value] if summary.count(severity) else None,
            )
        console.print(table)

        if result.issues:
            issues_table = Table(show_header=True)
            issues_table.add_column("Line", justify="right")
            issues_table.add_column("Severity")
            issues_table.add_column("Category")
            issues_table.add_column("Type")
            issues_table.add_column("Title")
            for issue in result.issues:
                issues_table.add_row(
                    str(issue.line),
                    issue.severity.value,
                    issue.category.value,
                    issue.type,
                    issue.title,
                    style=SEVERITY_STYLE[issue.severity.value],
                )
            console.print(issues_table)

        console.print(f"Duration: {result.metrics.duration:.2f}ms")
