"""Rich console rendering of cohort reports."""

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .engagement import EngagementResult
from .insights import OPPORTUNITY, POSITIVE, WARNING
from .report import CohortReport, LTVResult
from .retention import RetentionResult
from .revenue import RevenueResult

INSIGHT_STYLES = {POSITIVE: "green", WARNING: "red", OPPORTUNITY: "cyan"}


def _rate_style(rate: float) -> str:
    if rate >= 50:
        return "green"
    if rate >= 20:
        return "yellow"
    return "red"


def retention_table(result: RetentionResult) -> Table:
    table = Table(title="Retention by period (%)", show_lines=False, header_style="bold")
    table.add_column("Cohort", style="bold")
    table.add_column("Size", justify="right")
    for offset in result.periods:
        table.add_column(str(offset), justify="right")

    for row in result.cohort_table:
        cells = []
        for offset in result.periods:
            cell = row.retention_rates.get(offset)
            if cell is None:
                cells.append(Text("-", style="dim"))
            else:
                cells.append(Text(f"{cell.retention_rate:.1f}", style=_rate_style(cell.retention_rate)))
        table.add_row(row.cohort_period, str(row.cohort_size), *cells)

    if result.average_retention:
        table.add_row(
            Text("average", style="italic"),
            "",
            *(f"{result.average_retention[o]:.1f}" if o in result.average_retention else "-" for o in result.periods),
        )
    return table


def revenue_table(result: RevenueResult) -> Table:
    table = Table(title="Revenue by cohort", header_style="bold")
    table.add_column("Cohort", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Periods", justify="right")
    table.add_column("Total revenue", justify="right")
    table.add_column("Per user", justify="right")
    for row in result.revenue_cohorts:
        table.add_row(
            row.cohort_period,
            str(row.cohort_size),
            str(len(row.periods)),
            f"${row.total_revenue:,.2f}",
            f"${row.total_revenue / row.cohort_size:,.2f}",
        )
    return table


def engagement_table(result: EngagementResult) -> Table:
    table = Table(title="Engagement by cohort", header_style="bold")
    table.add_column("Cohort", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Avg days", justify="right")
    table.add_column("Avg actions", justify="right")
    table.add_column("Engaged %", justify="right")
    table.add_column("Highly engaged %", justify="right")
    for row in result.engagement_cohorts:
        table.add_row(
            row.cohort_period,
            str(row.cohort_size),
            f"{row.avg_active_days:.1f}",
            f"{row.avg_total_actions:.1f}",
            Text(f"{row.engagement_rate:.1f}", style=_rate_style(row.engagement_rate)),
            f"{row.high_engagement_rate:.1f}",
        )
    return table


def ltv_table(result: LTVResult) -> Table:
    table = Table(title="Lifetime value by registration month", header_style="bold")
    table.add_column("Month", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Avg LTV", justify="right")
    table.add_column("Median LTV", justify="right")
    table.add_column("Annual value", justify="right")
    table.add_column("Avg order", justify="right")
    for row in result.cohort_ltv:
        table.add_row(
            row.cohort_month,
            str(row.cohort_size),
            f"${row.avg_ltv:,.2f}",
            f"${(row.median_ltv or 0):,.2f}",
            f"${row.avg_annual_value:,.2f}",
            f"${row.avg_order_value:,.2f}",
        )
    return table


def print_report(console: Console, report: CohortReport) -> None:
    data = report.data
    console.rule(f"[bold cyan]{report.type.capitalize()} cohorts ({report.period})")

    if isinstance(data, RetentionResult):
        console.print(retention_table(data))
        console.print(f"  Cohorts: [bold]{data.total_cohorts}[/bold]")
    elif isinstance(data, RevenueResult):
        console.print(revenue_table(data))
        console.print(
            f"  Cohorts: [bold]{data.total_cohorts}[/bold], "
            f"avg revenue per cohort: [bold]${data.avg_revenue_per_cohort:,.2f}[/bold]"
        )
    elif isinstance(data, EngagementResult):
        console.print(engagement_table(data))
        console.print(
            f"  Cohorts: [bold]{data.total_cohorts}[/bold], "
            f"avg engagement: [bold]{(data.avg_engagement_rate or 0):.1f}%[/bold]"
        )
    elif isinstance(data, LTVResult):
        console.print(ltv_table(data))
        overall = data.overall_metrics
        console.print(
            f"  Users: [bold]{overall.total_users}[/bold], "
            f"avg LTV ${(overall.avg_ltv or 0):,.2f}, "
            f"median ${(overall.median_ltv or 0):,.2f}, "
            f"p90 ${(overall.p90_ltv or 0):,.2f}"
        )
        for insight in data.insights:
            style = INSIGHT_STYLES.get(insight.type, "white")
            console.print(f"  [{style}]{insight.type}[/{style}] {insight.message} ({insight.value})")
    console.print()
