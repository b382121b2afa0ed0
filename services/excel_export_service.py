"""
Excel export service for the Lecturer Attendance Management System
Styled attendance sheets and bulk import templates
"""

import openpyxl
from openpyxl.styles import Font, PatternFill, Alignment
from openpyxl.utils import get_column_letter
from io import BytesIO


class ExcelExportService:
    """Service for exporting reports to Excel"""

    @staticmethod
    def create_workbook():
        """Create a new workbook with default styling"""
        return openpyxl.Workbook()

    @staticmethod
    def style_header_row(ws, row_num, columns):
        """Apply styling to header row"""
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="000000", end_color="000000", fill_type="solid")
        header_alignment = Alignment(horizontal="center", vertical="center")

        for col_num, header in enumerate(columns, 1):
            cell = ws.cell(row=row_num, column=col_num, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment

    @staticmethod
    def auto_adjust_columns(ws):
        """Auto-adjust column widths"""
        for column in ws.columns:
            column_letter = get_column_letter(column[0].column)
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            ws.column_dimensions[column_letter].width = min(max_length + 2, 50)

    @staticmethod
    def format_number(value):
        """Whole numbers without decimals, fractional numbers to 2 places"""
        try:
            if value is None:
                return None
            num = float(value)
            return int(num) if num == int(num) else round(num, 2)
        except (ValueError, TypeError):
            return value

    @staticmethod
    def set_percentage(cell, percent_0_to_100):
        """Write a numeric percentage rather than text"""
        if percent_0_to_100 is None:
            cell.value = None
        else:
            cell.value = float(percent_0_to_100) / 100.0
            cell.number_format = '0%' if percent_0_to_100 == int(percent_0_to_100) else '0.00%'
        cell.alignment = Alignment(horizontal="left", vertical="center")
        return cell

    @staticmethod
    def workbook_to_bytes(wb):
        output = BytesIO()
        wb.save(output)
        data = output.getvalue()
        output.close()
        return data

    @staticmethod
    def write_table(ws, start_row, columns, rows, percent_columns=()):
        """Header plus data rows; returns the next free row"""
        ExcelExportService.style_header_row(ws, start_row, columns)
        row_num = start_row + 1
        for row in rows:
            for col_num, column in enumerate(columns, 1):
                value = row.get(column) if isinstance(row, dict) else row[col_num - 1]
                cell = ws.cell(row=row_num, column=col_num)
                if column in percent_columns:
                    ExcelExportService.set_percentage(cell, value)
                elif isinstance(value, (int, float)) and not isinstance(value, bool):
                    cell.value = ExcelExportService.format_number(value)
                else:
                    cell.value = value
            row_num += 1
        return row_num

    @staticmethod
    def export_report(report):
        """
        Export a report dict built by ReportingService.build_report.

        One sheet: a Field | Value block describing the period, a gap,
        then the report table.
        """
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = (report.get('tab') or 'Report').title()[:31]

        meta = [
            ('Report', report['title']),
            ('Period', f"{report['start_date']} to {report['end_date']}"),
            ('Generated', report['generated_at']),
            ('Total Records', len(report['rows'])),
        ]
        if report.get('lecturer'):
            meta.append(('Lecturer', report['lecturer']))
        ExcelExportService.style_header_row(ws, 1, ['Field', 'Value'])
        for offset, (field, value) in enumerate(meta, 2):
            ws.cell(row=offset, column=1, value=field)
            ws.cell(row=offset, column=2, value=value)

        table_row = len(meta) + 3
        if report['rows']:
            ExcelExportService.write_table(ws, table_row, report['columns'], report['rows'],
                                           percent_columns=report.get('percent_columns', ()))
        else:
            ws.cell(row=table_row, column=1, value='No data available for the selected criteria.')

        ExcelExportService.auto_adjust_columns(ws)
        return ExcelExportService.workbook_to_bytes(wb)

    @staticmethod
    def build_template(sheet_title, columns, example_rows=None, notes=None):
        """Blank import workbook with a styled header and optional examples"""
        wb = ExcelExportService.create_workbook()
        ws = wb.active
        ws.title = sheet_title[:31]
        ExcelExportService.write_table(ws, 1, columns, example_rows or [])
        ExcelExportService.auto_adjust_columns(ws)

        if notes:
            info = wb.create_sheet('Instructions')
            info.cell(row=1, column=1, value='Instructions').font = Font(bold=True)
            for row_num, line in enumerate(notes, 2):
                info.cell(row=row_num, column=1, value=line)
            info.column_dimensions['A'].width = 90
        return ExcelExportService.workbook_to_bytes(wb)
