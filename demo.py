#!/usr/bin/env python3
"""
Complete demo of the custody vault system
"""

import logging

from custody import (
    DAY, CustodyError, CustodyRules, Environment, GuardianWallet, InvalidState, ManualClock,
    MultiSigWallet, NonFungibleToken, PrincipalKey
)


def main():
    logging.basicConfig(level=logging.WARNING, format="%(name)s %(levelname)s %(message)s")

    print("=" * 60)
    print("🏦 CUSTODY VAULTS - COMPLETE DEMO")
    print("=" * 60)
    print()

    clock = ManualClock(start=0)
    env = Environment(clock)

    # Step 1: Setup
    print("🔧 STEP 1: Setting up participants")
    print("-" * 40)

    people = {}
    for name in ["Alice", "Bob", "Carol", "Dave", "Heir"]:
        people[name] = PrincipalKey()
        print(f"✅ {name}: {people[name].address}")

    alice, bob, carol, dave, heir = [people[n].address for n in people]
    env.native.mint(alice, 100_000_000)
    print()

    # Step 2: Multisig wallet
    print("🏗️  STEP 2: Creating 2-of-3 multisig wallet")
    print("-" * 40)

    wallet = MultiSigWallet(env, [alice, bob, carol], 2)
    wallet.deposit(alice, 10_000_000)
    print(f"✅ Wallet: {wallet.address}")
    print(f"✅ Balance: {wallet.balance:,}")

    pid = wallet.submit(alice, dave, 2_500_000)
    print(f"📝 Alice proposes paying Dave (proposal {pid}, "
          f"{wallet.engine.get_proposal(pid).confirmations} confirmation)")
    wallet.confirm(bob, pid)
    print(f"✅ Bob confirms, proposal is {wallet.engine.state_of(pid).value}")
    print(f"   Dave received: {env.native.balance_of(dave):,}")

    try:
        wallet.confirm(carol, pid)
    except InvalidState as e:
        print(f"❌ Carol's late confirmation rejected: {e}")
    print()

    # Step 3: Registry change
    print("👥 STEP 3: Changing the signer set")
    print("-" * 40)

    pid = wallet.submit_registry_change(alice, "remove_principal", principal=carol)
    wallet.confirm(bob, pid)
    print(f"✅ Carol removed, signers: {len(wallet.engine.principals())}, "
          f"quorum: {wallet.engine.quorum}")
    print()

    # Step 4: Guardian wallet
    print("🛡️  STEP 4: Guardian wallet with inactivity release")
    print("-" * 40)

    rules = CustodyRules.permissive()
    guardian = GuardianWallet(env, alice, heir, [bob, dave], rules=rules)
    punks = NonFungibleToken("Punks", "PNK")
    env.deploy(punks)
    for token_id in (1, 2):
        punks.mint(guardian.address, token_id)
        guardian.register_asset(alice, punks.address, token_id)
    guardian.deposit(alice, 5_000_000)
    print(f"✅ Guardian wallet: {guardian.address}")
    print(f"✅ Assets under custody: {len(guardian.ledger)}")
    print(f"✅ Inactivity period: {rules.inactivity_period // DAY} days")

    clock.set(rules.inactivity_period)
    try:
        guardian.release(bob)
    except CustodyError as e:
        print(f"⏳ Release at exactly {rules.inactivity_period // DAY} days: {e}")

    clock.advance(1)
    report = guardian.release(bob)
    print(f"✅ Released one second later: {len(report.transferred)} assets to heir")
    print(f"   Heir owns punk #1: {punks.owner_of(1) == heir}")
    print(f"   Heir native balance: {env.native.balance_of(heir):,}")
    print()

    # Step 5: Events
    print("📜 STEP 5: Event log")
    print("-" * 40)
    for event in env.events.all()[-5:]:
        print(f"   {event.name} from {event.emitter[:10]}... at t={event.timestamp}")
    print()

    print("🎉 Demo complete")


if __name__ == "__main__":
    main()
