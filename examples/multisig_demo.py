#!/usr/bin/env python3
"""
Example: Multisig wallet with off-chain signed confirmations
"""

from custody import Environment, MultiSigWallet, PrincipalKey


def main():
    print("=== Multisig Wallet ===")
    print()

    env = Environment()
    keys = {name: PrincipalKey() for name in ["Alice", "Bob", "Carol"]}
    addresses = [k.address for k in keys.values()]
    payee = PrincipalKey().address

    wallet = MultiSigWallet(env, addresses, 2)
    env.native.mint(keys["Alice"].address, 1_000_000)
    wallet.deposit(keys["Alice"].address, 1_000_000)

    print("🔑 Signers:")
    for name, key in keys.items():
        print(f"   {name}: {key.address}")
    print(f"   Quorum: {wallet.engine.quorum}-of-{len(addresses)}")
    print()

    pid = wallet.submit(keys["Alice"].address, payee, 250_000)
    print(f"📝 Proposal {pid}: pay 250,000 to {payee[:10]}...")

    # Carol signs offline; anyone can relay the signature
    carol = keys["Carol"]
    signature = carol.sign_digest(wallet.engine.proposal_digest(pid))
    wallet.confirm_signed(pid, carol.public_key_hex, signature)

    proposal = wallet.engine.get_proposal(pid)
    print(f"✅ Relayed Carol's signature, state: {wallet.engine.state_of(pid).value}")
    print(f"   Confirmed by: {len(wallet.engine.confirmations_of(pid))} signers")
    print(f"   Executed at: {proposal.executed_at}")
    print(f"   Payee balance: {env.native.balance_of(payee):,}")
    print(f"   Wallet balance: {wallet.balance:,}")


if __name__ == "__main__":
    main()
