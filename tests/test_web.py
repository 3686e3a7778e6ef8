import unittest

from custody import (
    DAY, Environment, GuardianWallet, InheritanceVault, ManualClock, MultiSigWallet, PrincipalKey
)
from web_interface.app import create_app


class TestWebInterface(unittest.TestCase):

    def setUp(self):
        """Set up test fixtures"""
        self.clock = ManualClock(start=0)
        self.env = Environment(self.clock)
        self.owner = PrincipalKey().address
        self.heir = PrincipalKey().address
        self.env.native.mint(self.owner, 10_000)

        self.vault = InheritanceVault(self.env, self.owner, self.heir)
        self.vault.deposit(self.owner, 4_000)

        self.signers = [PrincipalKey().address for _ in range(3)]
        self.wallet = MultiSigWallet(self.env, self.signers, 2)
        self.guardian = GuardianWallet(self.env, self.owner, self.heir, self.signers)

        self.client = create_app(self.env).test_client()

    def test_list_vaults(self):
        response = self.client.get('/api/vaults')
        self.assertEqual(response.status_code, 200)
        kinds = {v['address']: v['kind'] for v in response.get_json()['vaults']}
        self.assertEqual(kinds, {
            self.vault.address: "inheritance",
            self.wallet.address: "multisig",
            self.guardian.address: "guardian"
        })

    def test_vault_status(self):
        self.clock.set(10 * DAY)
        data = self.client.get(f'/api/vaults/{self.vault.address}').get_json()
        self.assertEqual(data['owner'], self.owner)
        self.assertEqual(data['heir'], self.heir)
        self.assertEqual(data['seconds_until_release'], 355 * DAY)
        self.assertFalse(data['release_permitted'])

        assets = self.client.get(f'/api/vaults/{self.vault.address}/assets').get_json()['assets']
        self.assertEqual(assets, [{
            'contract': 'native', 'item_id': None, 'kind': 'native', 'amount': 4_000
        }])

    def test_unknown_vault(self):
        response = self.client.get(f'/api/vaults/{PrincipalKey().address}')
        self.assertEqual(response.status_code, 404)

        # Wallets carry no custody ledger
        response = self.client.get(f'/api/vaults/{self.wallet.address}/assets')
        self.assertEqual(response.status_code, 404)

    def test_bad_address(self):
        response = self.client.get('/api/wallets/0x1234')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()['error'], "invalid_address")

    def test_wallet_and_proposals(self):
        a, b, _ = self.signers
        self.wallet.submit(a, self.heir, 0)
        executed = self.wallet.submit(b, self.heir, 0)
        self.wallet.confirm(a, executed)

        data = self.client.get(f'/api/wallets/{self.wallet.address}').get_json()
        self.assertEqual(data['principals'], self.signers)
        self.assertEqual(data['quorum'], 2)

        proposals = self.client.get(
            f'/api/wallets/{self.wallet.address}/proposals'
        ).get_json()['proposals']
        self.assertEqual([p['state'] for p in proposals], ["pending", "executed"])
        self.assertEqual(proposals[1]['confirmed_by'], [a, b])

        pending = self.client.get(
            f'/api/wallets/{self.wallet.address}/proposals?executed=0'
        ).get_json()['proposals']
        self.assertEqual(len(pending), 1)

        data = self.client.get(f'/api/wallets/{self.guardian.address}').get_json()
        self.assertEqual(data['kind'], "guardian")

    def test_events(self):
        events = self.client.get(
            f'/api/events?name=AssetRegistered&emitter={self.vault.address}'
        ).get_json()['events']
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]['data']['amount'], 4_000)


if __name__ == '__main__':
    unittest.main()
