import os


def _ensure_test_data():
    """Write minimal rules/usage fixtures and point the application to them.

    The service reads ``data/risk_rules.yaml`` and an optional CMS usage export
    by default.  Tests use a tiny, deterministic copy under ``tests/test_data``
    selected through ``RISK_RULES_PATH`` and ``RISK_USAGE_PATH``.
    """
    root = os.path.dirname(__file__)
    data_dir = os.path.join(root, "test_data")
    os.makedirs(data_dir, exist_ok=True)

    # risk_rules.yaml only overrides a couple of values; the rest are defaults
    rules_path = os.path.join(data_dir, "risk_rules.yaml")
    with open(rules_path, "w", encoding="utf-8") as f:
        f.write("multipliers:\n  mild: 1.0\n  moderate: 1.25\n  severe: 1.5\n")
        f.write("exposure:\n  alpha: 0.5\n")

    # usage.csv in the CMS Part D layout, with the BOM CMS exports carry
    usage_path = os.path.join(data_dir, "usage.csv")
    with open(usage_path, "w", encoding="utf-8-sig") as f:
        f.write("Brnd_Name,Gnrc_Name,Tot_Benes_2022,Tot_Clms_2022\n")
        f.write("Coumadin,Warfarin Sodium,1000,5000\n")
        f.write("Jantoven,Warfarin Sodium,500,2100\n")
        f.write("Zoloft,Sertraline HCl,2000,9000\n")

    # Point the application to the stub data before it is imported.
    os.environ["RISK_RULES_PATH"] = rules_path
    os.environ["RISK_USAGE_PATH"] = usage_path


# Ensure data files exist before tests import the app
_ensure_test_data()
