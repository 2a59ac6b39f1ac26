# phpayroll/engine/exceptions.py

"""
Custom exceptions for the payroll package.
"""


class PayrollError(Exception):
    """Base exception for payroll operations"""
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class PayrollInputError(PayrollError):
    """An employee's payroll inputs are incomplete or malformed"""
    status_code = 422

    def __init__(self, message, employee_id=None):
        super().__init__(message)
        self.employee_id = employee_id


class PayrollStateError(PayrollError):
    """The run is not in a status that allows the requested action"""
    status_code = 409


class PayrollNotFound(PayrollError):
    status_code = 404


class RulesetNotFound(PayrollError):
    """No statutory ruleset is registered under the requested id"""
    status_code = 500
