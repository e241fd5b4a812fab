from masterlist.registration.sanitizer import ProfanitySanitizer


class TestProfanitySanitizer:
    def test_masks_banned_word_with_same_length(self):
        assert ProfanitySanitizer().clean("shit server") == "**** server"

    def test_case_insensitive(self):
        assert ProfanitySanitizer().clean("Damn Fine Coffee") == "**** Fine Coffee"

    def test_whole_words_only(self):
        assert ProfanitySanitizer().clean("Scunthorpe United") == "Scunthorpe United"

    def test_prefers_longest_match(self):
        assert ProfanitySanitizer().clean("fucking lag") == "******* lag"

    def test_clean_text_unchanged(self):
        assert ProfanitySanitizer().clean("Attrition | EU West") == "Attrition | EU West"

    def test_extra_words(self):
        sanitizer = ProfanitySanitizer(["Grunt", "  "])
        assert sanitizer.clean("no grunts allowed, grunt") == "no grunts allowed, *****"
