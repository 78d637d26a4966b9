import io

from openpyxl import Workbook
from openpyxl.chart import BarChart, Reference
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlmodel import Session

from app.services import stats_service

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CURRENCY = "₹#,##0.00"

thin = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
header_font = Font(bold=True, color="FFFFFF")
header_fill = PatternFill("solid", fgColor="4F81BD")
center = Alignment(horizontal="center")


def _header(ws, titles):
    ws.append(titles)
    for cell in ws[1]:
        cell.font = header_font
        cell.fill = header_fill
        cell.border = thin
        cell.alignment = center


def _style_body(ws, currency_cols=()):
    for row in ws.iter_rows(min_row=2):
        for idx in currency_cols:
            row[idx].number_format = CURRENCY
        for cell in row:
            cell.border = thin


def build_stats_workbook(session: Session) -> io.BytesIO:
    dashboard = stats_service.dashboard(session)
    downloads = stats_service.download_stats(session)
    revenue = stats_service.revenue_stats(session)

    wb = Workbook()

    # Overview
    ws = wb.active
    ws.title = "Overview"
    _header(ws, ["Metric", "Value"])
    ws.append(["Total Users", dashboard["totalUsers"]])
    ws.append(["Total PDFs", dashboard["totalPdfs"]])
    ws.append(["Total Downloads", dashboard["totalDownloads"]])
    ws.append(["Total Revenue", dashboard["totalRevenue"]])
    _style_body(ws)
    ws["B5"].number_format = CURRENCY

    # Documents
    ws2 = wb.create_sheet("Documents")
    _header(ws2, ["Title", "Price", "Downloads", "Purchases", "Revenue"])
    purchases = {r["id"]: r for r in revenue["revenueByPdf"]}
    for row in downloads:
        bought = purchases.pop(row["id"], {})
        ws2.append([
            row["title"],
            row["price"],
            row["totalDownloads"],
            bought.get("purchases", 0),
            bought.get("revenue", 0),
        ])
    # bought but never downloaded; keeps the column summing to total revenue
    for row in purchases.values():
        ws2.append([row["title"], row["price"], 0, row["purchases"], row["revenue"]])
    _style_body(ws2, currency_cols=(1, 4))

    # Monthly
    ws3 = wb.create_sheet("Monthly")
    _header(ws3, ["Period", "Revenue"])
    for row in revenue["monthlyRevenue"]:
        ws3.append([row["period"], row["revenue"]])
    _style_body(ws3, currency_cols=(1,))

    months = len(revenue["monthlyRevenue"])
    if months:
        chart = BarChart()
        chart.title = "Revenue Trend"
        chart.add_data(Reference(ws3, min_col=2, min_row=1, max_row=months + 1), titles_from_data=True)
        chart.set_categories(Reference(ws3, min_col=1, min_row=2, max_row=months + 1))
        ws3.add_chart(chart, "D3")

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
