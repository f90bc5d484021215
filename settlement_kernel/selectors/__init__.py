"""Selectors - read-only query layer of the settlement kernel."""

from settlement_kernel.selectors.installment_selector import InstallmentSelector

__all__ = ["InstallmentSelector"]
