from datetime import date
from pytest_bdd import scenarios, given, when, then, parsers
from omnitrack.cli.main import cli
from omnitrack.models import Budget, Transaction

scenarios("features/budget.feature")


@given(parsers.parse('a "{category}" budget of {limit:d}'))
def category_budget(studio, category, limit):
    studio.controller.snapshot.budgets.append(Budget(category=category, limit=limit))


@given(parsers.parse('"{category}" expenses of {amount:d}'))
def category_expenses(studio, category, amount):
    studio.controller.snapshot.transactions.append(
        Transaction(id=category, amount=amount, type="EXPENSE", category=category, date=date.today().isoformat())
    )


@when("the owner lists budgets")
def list_budgets(runner, context):
    context["result"] = runner.invoke(cli, ["budget", "list"])


@when(parsers.parse('the owner sets the "{category}" budget to {limit:d}'))
def set_budget(runner, context, studio, category, limit):
    studio.controller.budget_limits.return_value = {category: float(limit)}
    context["result"] = runner.invoke(cli, ["budget", "set", category, str(limit)])


@then("the limits are saved to local preferences")
def limits_saved(studio):
    studio.local_state.set_budget_limits.assert_called_once_with({"Travel": 3000.0})
