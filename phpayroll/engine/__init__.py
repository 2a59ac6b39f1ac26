# phpayroll/engine/__init__.py
"""
Pure payroll computation: attendance metrics, day types, statutory tables,
the per-employee compute pipeline and the YTD accumulator. Nothing in this
package touches Flask or the database.
"""
