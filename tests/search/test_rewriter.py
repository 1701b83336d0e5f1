import re

from rolo.search.rewriter import DEFAULT_RULES, UNKNOWN_INTENT, QueryRewriter, RewriteRule


class TestRewrite:
    def setup_method(self):
        self.rewriter = QueryRewriter()

    def test_who_do_i_know_at(self):
        result = self.rewriter.rewrite("Who do I know at Think Foundation?")
        assert result.rewritten == "Who works at Think Foundation?"
        assert result.intent == "who_works_at"
        assert result.confidence == 0.95
        assert result.was_rewritten

    def test_show_me_people_at(self):
        result = self.rewriter.rewrite("show me people from Proof")
        assert result.rewritten == "Who works at Proof?"
        assert result.confidence == 0.85

    def test_who_works_at_is_canonical(self):
        result = self.rewriter.rewrite("Who works at Think?")
        assert result.rewritten == "Who works at Think?"
        assert result.intent == "who_works_at"

    def test_tell_me_about(self):
        result = self.rewriter.rewrite("Tell me about Felix?")
        assert result.rewritten == "Tell me about Felix"
        assert result.intent == "person_info"
        assert result.confidence == 0.90

    def test_who_is(self):
        result = self.rewriter.rewrite("who is Sarah")
        assert result.rewritten == "Tell me about Sarah"
        assert result.confidence == 0.85

    def test_details_about(self):
        result = self.rewriter.rewrite("details about John")
        assert result.rewritten == "Tell me about John"
        assert result.confidence == 0.80

    def test_what_company_does_x_work(self):
        result = self.rewriter.rewrite("What company does Felix work for?")
        assert result.rewritten == "Where does Felix work?"
        assert result.intent == "where_works"
        assert result.confidence == 0.90

    def test_who_does_x_work_for(self):
        result = self.rewriter.rewrite("Who does Mikey work for?")
        assert result.rewritten == "Where does Mikey work?"
        assert result.confidence == 0.95

    def test_titles(self):
        result = self.rewriter.rewrite("show me all CEOs")
        assert result.rewritten == "Show me all CEOs"
        assert result.intent == "by_title"

    def test_social_handle(self):
        result = self.rewriter.rewrite("What is John's linkedin?")
        assert result.rewritten == "What is John's linkedin?"
        assert result.intent == "social_media"

    def test_compound_passes_through(self):
        text = "Where does Mikey Anderson work and what are his thoughts on building?"
        result = self.rewriter.rewrite(text)
        assert result.rewritten == text
        assert result.intent == "compound"
        assert result.confidence == 0.80

    def test_two_questions_are_compound(self):
        text = "Where is the office? When is the meetup?"
        result = self.rewriter.rewrite(text)
        assert result.intent == "compound"
        assert result.confidence == 0.85
        assert result.rewritten == text

    def test_no_match(self):
        result = self.rewriter.rewrite("building distributed systems")
        assert result.rewritten == "building distributed systems"
        assert result.intent == UNKNOWN_INTENT
        assert result.confidence == 0.0
        assert not result.was_rewritten

    def test_first_rule_wins(self):
        # Both an org-membership rule and the compound rule match; the earlier one wins
        result = self.rewriter.rewrite("who do I know at Think and Proof")
        assert result.intent == "who_works_at"

    def test_deterministic(self):
        text = "who is Felix"
        assert self.rewriter.rewrite(text) == self.rewriter.rewrite(text)


class TestRewriterRules:
    def test_with_rule_returns_new_rewriter(self):
        rewriter = QueryRewriter()
        rule = RewriteRule(re.compile(r"ping (\w+)", re.IGNORECASE), "ping", lambda m, _: f"pong {m.group(1)}", 0.5)
        extended = rewriter.with_rule(rule)

        assert len(extended.rules) == len(rewriter.rules) + 1
        assert rewriter.rules == DEFAULT_RULES
        assert extended.rewrite("ping felix").rewritten == "pong felix"
        assert rewriter.rewrite("ping felix").intent == UNKNOWN_INTENT

    def test_explain_marks_matching_rules(self):
        explained = QueryRewriter().explain("Tell me about Felix")
        matched = [rule.intent for rule, hit in explained if hit]
        assert matched == ["person_info"]
        assert len(explained) == len(DEFAULT_RULES)
