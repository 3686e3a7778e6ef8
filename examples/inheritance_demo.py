#!/usr/bin/env python3
"""
Example: Inheritance vault with proof of life
"""

from custody import DAY, CustodyRules, Environment, InheritanceVault, ManualClock, PrincipalKey


def main():
    print("=== Inheritance Vault ===")
    print()

    clock = ManualClock(start=0)
    env = Environment(clock)
    owner, heir = PrincipalKey().address, PrincipalKey().address
    env.native.mint(owner, 100_000_000)

    rules = CustodyRules.permissive()
    vault = InheritanceVault(env, owner, heir, rules)
    vault.deposit(owner, 60_000_000)

    print("📋 Vault:")
    print(f"   Address: {vault.address}")
    print(f"   Balance: {vault.native_balance:,}")
    print(f"   Inactivity period: {rules.inactivity_period // DAY} days")
    print()

    print("💓 Owner checks in on day 80...")
    clock.set(80 * DAY)
    vault.heartbeat(owner)
    print(f"   Release in {vault.switch.time_until_release() // DAY} days")

    print("💸 Owner withdraws 10,000,000 on day 120...")
    clock.set(120 * DAY)
    vault.withdraw(owner, 10_000_000)
    print(f"   Balance: {vault.native_balance:,}")
    print()

    clock.set(210 * DAY)
    print(f"⏳ Day 210, release permitted: {vault.switch.is_release_permitted()}")
    clock.advance(1)
    print(f"⏳ Day 210 + 1s, release permitted: {vault.switch.is_release_permitted()}")

    report = vault.claim(heir)
    print(f"✅ Heir claimed {len(report.transferred)} asset(s)")
    print(f"   Heir balance: {env.native.balance_of(heir):,}")
    print(f"   Vault released: {vault.released}")


if __name__ == "__main__":
    main()
