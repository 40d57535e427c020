import unittest

from structlog.testing import capture_logs

from correlate import analyze_commits, calculate_progress_increase
from correlate.commits import classify_message, is_significant_file
from correlate.models import CommitAnalysis
from normalize.models import SourceControlBinding
from normalize.util import normalize_commit


def _commit(message, added=None, modified=None, removed=None, sha='c1'):
    return normalize_commit({'id': sha, 'message': message, 'timestamp': '2025-03-01T10:00:00Z', 'added': added or [], 'modified': modified or [], 'removed': removed or []})


class TestCommitClassifier(unittest.TestCase):
    def test_feature_commit_with_code_change(self):
        analysis = analyze_commits([_commit('feat: add X', added=['a.ts'])])
        self.assertEqual(analysis.significant_changes, 1)
        self.assertEqual(analysis.feature_commits, 1)
        self.assertEqual(analysis.bugfix_commits, 0)
        self.assertEqual(analysis.total_files_changed, 1)
        self.assertEqual(analysis.progress_indicators, [])
        self.assertEqual(calculate_progress_increase(analysis, 80), 4.0)

    def test_readme_only_commit_is_worth_nothing(self):
        analysis = analyze_commits([_commit('update README.md', modified=['README.md'])])
        self.assertEqual(analysis.significant_changes, 0)
        self.assertEqual(analysis.feature_commits, 0)
        self.assertEqual(analysis.bugfix_commits, 0)
        for weight in (1, 50, 100):
            self.assertEqual(calculate_progress_increase(analysis, weight), 0.0)

    def test_first_matching_category_wins(self):
        self.assertEqual(classify_message('feat: fix the bug'), 'feature')
        self.assertEqual(classify_message('Fixed error in docs build'), 'bugfix')
        self.assertEqual(classify_message('docs: describe setup'), 'docs')
        self.assertEqual(classify_message('chore: bump deps'), '')

        analysis = analyze_commits([_commit('feat: fix the bug', added=['src/x.py'])])
        self.assertEqual((analysis.feature_commits, analysis.bugfix_commits), (1, 0))

    def test_progress_keywords_are_independent_of_category(self):
        analysis = analyze_commits([_commit('feat: MVP of checkout\n\ndetails', added=['src/checkout.py'])])
        self.assertEqual(analysis.feature_commits, 1)
        self.assertEqual(analysis.progress_indicators, ['Progress: feat: MVP of checkout'])
        self.assertEqual(analysis.highlights, ['Feature: feat: MVP of checkout'])

    def test_denylist_is_case_insensitive(self):
        for path in ('README.md', 'docs/guide.MD', 'notes.txt', 'package.json', 'ci.yml', 'app.YAML', '.env.local', '.gitignore', '.prettierrc', '.eslintrc.js', 'LICENSE', 'readme'):
            self.assertFalse(is_significant_file(path), path)
        for path in ('src/app.ts', 'lib/environment.py', 'main.go'):
            self.assertTrue(is_significant_file(path), path)

    def test_bugfix_increase(self):
        analysis = analyze_commits([_commit('fix: crash on save', modified=['src/save.py'])])
        self.assertEqual(analysis.bugfix_commits, 1)
        self.assertEqual(calculate_progress_increase(analysis, 50), 1.8)

    def test_progress_indicator_bonus(self):
        analysis = analyze_commits([_commit('release v1 complete', modified=['src/a.py'])])
        self.assertEqual(analysis.feature_commits, 0)
        self.assertEqual(len(analysis.progress_indicators), 1)
        self.assertEqual(calculate_progress_increase(analysis, 100), 3.0)

    def test_large_push_bonus(self):
        files = [f'src/f{i}.py' for i in range(11)]
        analysis = analyze_commits([_commit('chore: bump deps', modified=files)])
        self.assertEqual(analysis.total_files_changed, 11)
        self.assertEqual(calculate_progress_increase(analysis, 50), 2.0)

    def test_documentation_commits_count_but_add_nothing(self):
        analysis = analyze_commits([_commit('docs: update guide', modified=['docs/guide.md'])])
        self.assertEqual(analysis.documentation_commits, 1)
        self.assertEqual(calculate_progress_increase(analysis, 100), 0.0)

    def test_single_push_is_capped(self):
        commits = [_commit(f'feat: part {i}', added=[f'src/p{i}.py'], sha=f'c{i}') for i in range(5)]
        analysis = analyze_commits(commits)
        self.assertEqual(analysis.feature_commits, 5)
        self.assertEqual(calculate_progress_increase(analysis, 100), 10.0)

    def test_binding_weight_is_used(self):
        analysis = analyze_commits([_commit('feat: add X', added=['a.ts'])])
        binding = SourceControlBinding(repo='acme/app', progress_weight=80)
        self.assertEqual(calculate_progress_increase(analysis, binding), 4.0)

    def test_analysis_never_raises(self):
        with capture_logs() as logs:
            analysis = analyze_commits([_commit('feat: ok', added=['a.py']), None])
        self.assertEqual(analysis.to_dict(), CommitAnalysis().to_dict())
        self.assertIn('commit_analysis_failed', [e['event'] for e in logs])

    def test_malformed_analysis_is_worth_nothing(self):
        broken = CommitAnalysis(significant_changes=None, feature_commits=2)
        with capture_logs() as logs:
            self.assertEqual(calculate_progress_increase(broken, 80), 0.0)
        self.assertIn('progress_increase_failed', [e['event'] for e in logs])

    def test_empty_batch(self):
        analysis = analyze_commits([])
        self.assertEqual(analysis.significant_changes, 0)
        self.assertEqual(calculate_progress_increase(analysis, 100), 0.0)


def test_increase_is_always_between_zero_and_ten():
    for weight in (0.5, 1, 25, 80, 100):
        for significant in (0, 1, 4):
            for features in (0, 1, 3, 20):
                for bugfixes in (0, 2, 30):
                    for files in (0, 11, 500):
                        for indicators in ([], ['Progress: x']):
                            analysis = CommitAnalysis(significant, features, bugfixes, 0, files, list(indicators))
                            inc = calculate_progress_increase(analysis, weight)
                            assert 0.0 <= inc <= 10.0


if __name__ == '__main__':
    unittest.main()
