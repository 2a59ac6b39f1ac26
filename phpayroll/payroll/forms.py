# phpayroll/payroll/forms.py

from flask_wtf import FlaskForm
from wtforms import DateField, DecimalField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length, NumberRange, Optional

from phpayroll.engine.types import AdjustmentType, PayFrequency


class RunPayrollForm(FlaskForm):
    """Form for Admin to define a new payroll run."""
    pay_period_start = DateField('Pay Period Start', format='%Y-%m-%d', validators=[DataRequired()])
    pay_period_end = DateField('Pay Period End', format='%Y-%m-%d', validators=[DataRequired()])
    pay_date = DateField('Payment Date', format='%Y-%m-%d', validators=[DataRequired()])
    pay_frequency = SelectField(
        'Pay Frequency',
        choices=[(f.value, f.value) for f in PayFrequency],
        default=PayFrequency.SEMI_MONTHLY.value,
    )


class ManualAdjustmentForm(FlaskForm):
    employee_id = IntegerField('Employee', validators=[DataRequired()])
    adjustment_type = SelectField(
        'Type', choices=[(t.value, t.value) for t in AdjustmentType], validators=[DataRequired()])
    category = StringField('Category', validators=[DataRequired(), Length(max=30)])
    description = StringField('Description', validators=[DataRequired(), Length(max=200)])
    amount = DecimalField('Amount', places=2, validators=[DataRequired(), NumberRange(min=0.01)])
    remarks = StringField('Remarks', validators=[Optional()])


class PenaltyForm(FlaskForm):
    employee_id = IntegerField('Employee', validators=[DataRequired()])
    description = StringField('Description', validators=[DataRequired(), Length(max=200)])
    total_amount = DecimalField('Total Amount', places=2, validators=[DataRequired(), NumberRange(min=0.01)])
    installment_count = IntegerField('Installments', default=1, validators=[DataRequired(), NumberRange(min=1)])
    effective_date = DateField('Effective Date', format='%Y-%m-%d', validators=[DataRequired()])
    remarks = StringField('Remarks', validators=[Optional()])
