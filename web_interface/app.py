#!/usr/bin/env python3
"""
Read-only web interface for inspecting custody vaults and wallets
"""

import logging
import os

from flask import Flask, jsonify, request

from custody import CustodyError, MultiSigWallet
from custody.keys import normalize_address
from custody.variants import BaseVault, GuardianWallet

logger = logging.getLogger(__name__)


def create_app(env, contracts=None) -> Flask:
    """
    Build the inspection app.

    ``contracts`` maps address -> vault or wallet; by default every vault and
    wallet deployed in ``env`` is exposed.
    """
    app = Flask(__name__)

    def registry():
        if contracts is not None:
            return contracts
        return {
            address: c for address, c in env.contracts().items()
            if isinstance(c, (BaseVault, MultiSigWallet))
        }

    def lookup(address, kinds):
        contract = registry().get(normalize_address(address))
        if contract is None or not isinstance(contract, kinds):
            return None
        return contract

    def engine_of(contract):
        return contract.engine if isinstance(contract, MultiSigWallet) else contract.guardians

    @app.errorhandler(CustodyError)
    def custody_error(e):
        status = 404 if e.kind == "not_found" else 400
        return jsonify({'success': False, **e.to_dict()}), status

    @app.route('/api/vaults')
    def list_vaults():
        """Addresses and kinds of everything under inspection"""
        return jsonify({
            'vaults': [
                {'address': address, 'kind': c.kind}
                for address, c in sorted(registry().items())
            ]
        })

    @app.route('/api/vaults/<address>')
    def get_vault(address):
        vault = lookup(address, (BaseVault, MultiSigWallet))
        if vault is None:
            return jsonify({'error': 'Vault not found'}), 404
        return jsonify(vault.status())

    @app.route('/api/vaults/<address>/assets')
    def get_assets(address):
        vault = lookup(address, (BaseVault,))
        if vault is None:
            return jsonify({'error': 'Vault not found'}), 404
        return jsonify({'assets': [r.to_dict() for r in vault.ledger.records()]})

    @app.route('/api/wallets/<address>')
    def get_wallet(address):
        wallet = lookup(address, (MultiSigWallet, GuardianWallet))
        if wallet is None:
            return jsonify({'error': 'Wallet not found'}), 404
        engine = engine_of(wallet)
        return jsonify({
            'address': wallet.address,
            'kind': wallet.kind,
            'principals': engine.principals(),
            'quorum': engine.quorum,
            'balance': env.native.balance_of(wallet.address)
        })

    @app.route('/api/wallets/<address>/proposals')
    def get_proposals(address):
        wallet = lookup(address, (MultiSigWallet, GuardianWallet))
        if wallet is None:
            return jsonify({'error': 'Wallet not found'}), 404
        engine = engine_of(wallet)
        pending = request.args.get('pending', 1, type=int) == 1
        executed = request.args.get('executed', 1, type=int) == 1

        proposals = []
        for proposal in engine.proposals(pending=pending, executed=executed):
            data = proposal.to_dict()
            data['state'] = engine.state_of(proposal.proposal_id).value
            data['confirmed_by'] = engine.confirmations_of(proposal.proposal_id)
            proposals.append(data)
        return jsonify({'quorum': engine.quorum, 'proposals': proposals})

    @app.route('/api/events')
    def get_events():
        name = request.args.get('name')
        emitter = request.args.get('emitter')
        events = env.events.filter(name=name, emitter=emitter)
        return jsonify({'events': [e.to_dict() for e in events]})

    return app


if __name__ == "__main__":
    from custody import Environment, InheritanceVault, PrincipalKey

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    env = Environment()
    owner, heir = PrincipalKey(), PrincipalKey()
    env.native.mint(owner.address, 100_000_000)
    vault = InheritanceVault(env, owner.address, heir.address)
    vault.deposit(owner.address, 50_000_000)
    logger.info("demo vault at %s", vault.address)

    port = int(os.environ.get("PORT", 10000))
    create_app(env).run(
        host="0.0.0.0",
        port=port,
        debug=False
    )
