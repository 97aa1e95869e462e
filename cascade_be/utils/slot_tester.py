import argparse
import random
import secrets
from decimal import Decimal

import numpy as np

from cascade_be.services.bonus_service import BonusStateMachine
from cascade_be.services.economy_service import EconomyState
from cascade_be.utils.game_config import load_game_settings
from cascade_be.utils.spin_handler import create_controller, handle_spin
from cascade_be.utils.win_calculator import get_win_category


class SlotTester:
    """
    Simulates play of one game to measure RTP and related statistics.

    A simulated round is one paid spin plus every free spin it leads to, so
    bonus wins are attributed to the paid spin that triggered them.

    Args:
        settings (GameSettings): Game under test.
        num_spins (int): Number of paid rounds to simulate.
        bet (Decimal, optional): Bet per round; clamped to the bet table. Defaults to the game default.
        seed (int, optional): Seed for a reproducible run.
    """

    def __init__(self, settings, num_spins, bet=None, seed=None):
        self.settings = settings
        self.num_spins = num_spins
        self.seed = seed
        self.random_source = random.Random(seed) if seed is not None else secrets.SystemRandom()

        ample_balance = Decimal(num_spins + 1) * max(settings.bet_levels)
        self.economy = EconomyState(settings.bet_levels, ample_balance,
                                    current_bet=bet if bet is not None else settings.default_bet)
        self.bonus = BonusStateMachine(settings)
        self.controller = create_controller(settings, self.economy, self.bonus, self.random_source)
        self.bet_amount = self.economy.current_bet

        # Statistics to be collected
        self.total_bet = Decimal('0.00')
        self.total_win = Decimal('0.00')
        self.hit_count = 0
        self.total_free_spins = 0
        self.bonus_triggers = 0
        self.total_bonus_win = Decimal('0.00')
        self.bonus_data = []
        self.infinity_power_count = 0
        self.cascade_limit_hits = 0
        self.max_cascades = 0
        self.round_wins = []
        self.wins_by_category = {}
        self.rtp_over_time = []

        # Derived statistics
        self.overall_rtp = 0.0
        self.hit_frequency = 0.0
        self.bonus_frequency = 0.0
        self.avg_bonus_win = 0.0
        self.base_game_rtp_contribution = 0.0
        self.bonus_rtp_contribution = 0.0
        self.max_win_multiplier = 0.0
        self.volatility_index = 0.0

    def _spin(self):
        outcome = handle_spin(self.controller)
        if outcome.infinity_power is not None:
            self.infinity_power_count += 1
        if outcome.cascade_limit_reached:
            self.cascade_limit_hits += 1
        self.max_cascades = max(self.max_cascades, outcome.cascade_count)
        return outcome

    def _simulate_one_round(self):
        outcome = self._spin()
        round_win = outcome.total_win
        self.total_bet += outcome.bet

        if outcome.triggered_free_spins:
            self.bonus_triggers += 1
            bonus_win = Decimal('0.00')
            bonus_spins = 0
            while self.bonus.in_free_spins:
                free_outcome = self._spin()
                bonus_spins += 1
                bonus_win += free_outcome.total_win
            self.total_free_spins += bonus_spins
            self.total_bonus_win += bonus_win
            self.bonus_data.append({'total_win': bonus_win, 'num_spins': bonus_spins})
            round_win += bonus_win

        return outcome.bet, round_win

    def _collect_round_statistics(self, bet, round_win):
        self.total_win += round_win
        if round_win > 0:
            self.hit_count += 1
        ratio = float(round_win / bet) if bet > 0 else 0.0
        self.round_wins.append(ratio)

        if round_win == 0:
            category = 'NO_WIN'
        else:
            category = get_win_category(round_win, bet, self.settings.win_categories) or 'SUB_BET'
        self.wins_by_category[category] = self.wins_by_category.get(category, 0) + 1

    def run_simulation(self):
        print(f"INFO: Starting simulation for {self.settings.short_name} with {self.num_spins} rounds at {self.bet_amount} per spin.")
        interval = self.num_spins // 20 or 1
        for i in range(self.num_spins):
            bet, round_win = self._simulate_one_round()
            self._collect_round_statistics(bet, round_win)
            if (i + 1) % interval == 0 or (i + 1) == self.num_spins:
                rtp = float(self.total_win / self.total_bet) * 100 if self.total_bet > 0 else 0.0
                self.rtp_over_time.append({'spin_count': i + 1, 'rtp': rtp})
        print(f"INFO: Simulation finished for {self.settings.short_name}.")
        self.calculate_derived_statistics()

    def calculate_derived_statistics(self):
        if self.num_spins == 0 or self.total_bet == 0:
            print("Warning: No spins were simulated. Cannot calculate derived statistics.")
            return

        self.overall_rtp = float(self.total_win / self.total_bet) * 100
        self.hit_frequency = (self.hit_count / self.num_spins) * 100
        self.bonus_frequency = (self.bonus_triggers / self.num_spins) * 100
        self.avg_bonus_win = float(self.total_bonus_win / self.bonus_triggers) if self.bonus_triggers > 0 else 0.0

        base_game_win = self.total_win - self.total_bonus_win
        self.base_game_rtp_contribution = float(base_game_win / self.total_bet) * 100
        self.bonus_rtp_contribution = float(self.total_bonus_win / self.total_bet) * 100

        ratios = np.array(self.round_wins, dtype=float)
        self.volatility_index = float(np.std(ratios))
        self.max_win_multiplier = float(np.max(ratios)) if ratios.size else 0.0

    def summary(self):
        return {
            'game': self.settings.short_name,
            'rounds': self.num_spins,
            'bet': str(self.bet_amount),
            'total_bet': str(self.total_bet),
            'total_win': str(self.total_win),
            'rtp': self.overall_rtp,
            'target_rtp': self.settings.rtp * 100 if self.settings.rtp is not None else None,
            'hit_frequency': self.hit_frequency,
            'bonus_frequency': self.bonus_frequency,
            'average_bonus_win': self.avg_bonus_win,
            'free_spins_played': self.total_free_spins,
            'infinity_power_count': self.infinity_power_count,
            'max_win_multiplier': self.max_win_multiplier,
            'volatility_index': self.volatility_index,
            'wins_by_category': dict(self.wins_by_category),
            'cascade_limit_hits': self.cascade_limit_hits,
        }

    def print_summary_statistics(self):
        print("\n--- Simulation Summary ---")
        print(f"Slot Game: {self.settings.name}")
        print(f"Rounds Simulated: {self.num_spins} (plus {self.total_free_spins} free spins)")
        print(f"Bet Amount Per Round: {self.bet_amount}")
        print(f"Total Wagered: {self.total_bet}")
        print(f"Total Won: {self.total_win}")

        print("\n--- Detailed Metrics ---")
        target_rtp_display = f"{self.settings.rtp * 100:.2f}%" if self.settings.rtp is not None else "N/A"
        print(f"Overall RTP: {self.overall_rtp:.2f}% (Target: {target_rtp_display})")
        print(f"Hit Frequency: {self.hit_frequency:.2f}% ({self.hit_count} wins out of {self.num_spins} rounds)")
        print(f"Bonus Trigger Frequency: {self.bonus_frequency:.2f}% ({self.bonus_triggers} triggers)")
        print(f"Average Bonus Win: {self.avg_bonus_win:.2f} (Total from bonuses: {self.total_bonus_win})")
        print(f"Base Game RTP Contribution: {self.base_game_rtp_contribution:.2f}%")
        print(f"Bonus Game RTP Contribution: {self.bonus_rtp_contribution:.2f}%")
        print(f"Infinity Power Activations: {self.infinity_power_count}")
        print(f"Longest Avalanche: {self.max_cascades} cascades")
        cap_display = f" (cap {self.settings.max_win_multiplier}x)" if self.settings.max_win_multiplier else ""
        print(f"Max Win: {self.max_win_multiplier:.2f}x bet{cap_display}")
        print(f"Volatility Index (Win StdDev / Bet): {self.volatility_index:.2f}")
        if self.cascade_limit_hits:
            print(f"WARNING: Cascade safety limit reached {self.cascade_limit_hits} times")

        print("\nWin Distribution (by Category):")
        for category, count in sorted(self.wins_by_category.items(), key=lambda item: -item[1]):
            print(f"  {category}: {count} times ({(count / self.num_spins) * 100:.2f}%)")


def main():
    parser = argparse.ArgumentParser(description="Cascade Slot Tester - Simulates play to analyze RTP and other metrics.")
    parser.add_argument("slot_short_name", type=str, help="The short_name of the slot to test (a directory under public/slots).")
    parser.add_argument("--num_spins", type=int, default=10000, help="Number of paid rounds to simulate.")
    parser.add_argument("--bet_amount", type=str, default=None, help="Bet per round (defaults to the game default bet).")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run.")
    parser.add_argument("--config_dir", type=str, default=None, help="Alternative directory holding slot configurations.")

    args = parser.parse_args()

    print(f"--- Initializing Slot Tester for: {args.slot_short_name} ---")
    settings = load_game_settings(args.slot_short_name, args.config_dir)
    tester = SlotTester(
        settings,
        num_spins=args.num_spins,
        bet=Decimal(args.bet_amount) if args.bet_amount else None,
        seed=args.seed
    )
    tester.run_simulation()
    tester.print_summary_statistics()
    print(f"--- Slot Tester run finished for: {args.slot_short_name} ---")


if __name__ == "__main__":
    main()
